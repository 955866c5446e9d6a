from blogbatch.articles.store import (
    ArticleRepository,
    FileArticleRepository,
    PostgresArticleRepository,
    open_article_repository,
)

__all__ = [
    "ArticleRepository",
    "FileArticleRepository",
    "PostgresArticleRepository",
    "open_article_repository",
]

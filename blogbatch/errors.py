"""Exception hierarchy shared across the generation pipeline."""


class BlogBatchError(Exception):
    """Base class for blogbatch errors."""


class TopicLoadError(BlogBatchError):
    """Topics could not be read from config, file or CLI input."""


class BatchNotFoundError(BlogBatchError):
    """No persisted batch exists for the requested id."""

    def __init__(self, batch_id: str):
        super().__init__(f"Batch not found: {batch_id}")
        self.batch_id = batch_id


class ProgressPersistenceError(BlogBatchError):
    """The batch progress store failed to read or write."""


class ResearchError(BlogBatchError):
    """Required research calls failed for an article."""

    def __init__(self, failures: dict[str, str]):
        detail = "; ".join(f"{name}: {msg}" for name, msg in failures.items())
        super().__init__(f"Research failed ({detail})")
        self.failures = failures


class ArticleStoreError(BlogBatchError):
    """Article persistence failed or the database is unreachable."""


class ContentBlockError(BlogBatchError):
    """A content block payload failed validation."""

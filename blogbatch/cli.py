"""CLI entry-point: batch article generation."""

import asyncio
import logging

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from blogbatch.articles import FileArticleRepository
from blogbatch.cache import CacheManager
from blogbatch.config import get_settings
from blogbatch.content import HeadingBlock
from blogbatch.errors import BlogBatchError
from blogbatch.generator import ArticleGenerator, BatchReport, GenerationOptions, GenerationResources
from blogbatch.progress import ProgressTracker, open_progress_store

app = typer.Typer(help="Research-driven batch blog article generator")
console = Console()

USAGE = """\
Usage:
  blogbatch --count=5
  blogbatch --count=10 --priority=1-5
  blogbatch --category="SOC 2" --count=3
  blogbatch --topics="SOC 2 audit cost,HIPAA risk assessment"
  blogbatch --topics-file=topics.yaml
  blogbatch --resume=batch-20250101-120000-ab12

Options:
  --count=N          Maximum number of articles
  --priority=RANGE   Priority filter: 3, 1,2,5 or 2-4
  --category=NAME    Category filter (case-insensitive substring)
  --topics=CSV       Comma-separated topic titles
  --topics-file=PATH JSON or YAML topics file
  --resume=BATCH_ID  Continue an interrupted batch
  --verbose          Debug logging
"""


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=verbose, show_path=False)],
        force=True,
    )
    # Keep third-party request logs out of the progress output
    for name in ("httpx", "httpcore", "openai", "anthropic", "google_genai"):
        logging.getLogger(name).setLevel(logging.WARNING)


def print_report(report: BatchReport) -> None:
    stats = report.stats
    table = Table(title=f"Batch {report.batch_id}", show_header=False)
    table.add_row("Succeeded", f"[green]{report.success_count}[/green]")
    table.add_row("Failed", f"[red]{report.fail_count}[/red]")
    table.add_row("Batch total", str(stats.total))
    table.add_row("Completed", f"{stats.completed} ({stats.completion_percentage}%)")
    table.add_row("Failed (batch)", str(stats.failed))
    table.add_row("Pending", str(stats.pending + stats.processing))
    table.add_row(
        "Cache",
        f"{report.cache_stats.total} entries, {report.cache_stats.expired} expired, "
        f"{report.cache_stats.size / 1024:.1f} KB",
    )
    console.print(table)
    if stats.failed or stats.pending or stats.processing:
        console.print(f"Resume with: [bold]blogbatch --resume={report.batch_id}[/bold]")


async def _generate(options: GenerationOptions) -> BatchReport:
    settings = get_settings()
    async with GenerationResources(settings) as resources:
        generator = ArticleGenerator(resources, settings)
        return await generator.run(options)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    count: int | None = typer.Option(None, "--count", min=1, help="Maximum number of articles"),
    priority: str | None = typer.Option(None, "--priority", help="Priority filter: 3, 1,2,5 or 2-4"),
    category: str | None = typer.Option(None, "--category", help="Category filter"),
    topics: str | None = typer.Option(None, "--topics", help="Comma-separated topic titles"),
    topics_file: str | None = typer.Option(None, "--topics-file", help="JSON or YAML topics file"),
    resume: str | None = typer.Option(None, "--resume", help="Batch id to resume"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Generate articles for the selected topics, or resume a batch."""
    if ctx.invoked_subcommand is not None:
        _configure_logging(verbose)
        return

    options = GenerationOptions(
        count=count,
        priority=priority,
        category=category,
        topics=topics,
        topics_file=topics_file,
        resume=resume,
    )
    if all(v is None for v in vars(options).values()):
        console.print("[bold]blogbatch[/bold] - batch article generator\n")
        console.print(USAGE, markup=False, highlight=False)
        raise typer.Exit(0)

    _configure_logging(verbose)
    try:
        report = asyncio.run(_generate(options))
    except (BlogBatchError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    print_report(report)
    if report.success_count == 0 and report.fail_count > 0:
        console.print("[yellow]No articles were generated.[/yellow]")
    else:
        console.print("[green]Done.[/green]")


@app.command("cache-stats")
def cache_stats(
    cleanup: bool = typer.Option(False, "--cleanup", help="Delete expired entries first"),
    clear: bool = typer.Option(False, "--clear", help="Delete every cache entry"),
):
    """Show research cache statistics."""
    settings = get_settings()
    cache = CacheManager(settings.cache_dir)

    async def _run():
        if clear:
            await cache.clear_all()
        elif cleanup:
            removed = await cache.cleanup()
            console.print(f"Removed {removed} expired entries")
        return await cache.stats()

    stats = asyncio.run(_run())
    console.print(f"Cache dir: {settings.cache_dir}")
    console.print(f"Entries: {stats.total}  Expired: {stats.expired}  Size: {stats.size / 1024:.1f} KB")


@app.command()
def batches(
    cleanup_days: float | None = typer.Option(
        None, "--cleanup-days", help="Delete batches not updated for this many days"
    ),
):
    """List known batches, newest first."""
    settings = get_settings()

    async def _run():
        store = await open_progress_store(settings)
        try:
            tracker = ProgressTracker(store)
            if cleanup_days is not None:
                removed = await tracker.cleanup(cleanup_days)
                console.print(f"Deleted {removed} old batch(es)")
            return [(b, await tracker.get_stats(b.batch_id)) for b in await tracker.list_batches()]
        finally:
            await store.close()

    try:
        rows = asyncio.run(_run())
    except BlogBatchError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    if not rows:
        console.print("No batches found.")
        return
    table = Table(title="Batches")
    for column in ("Batch", "Created", "Total", "Completed", "Failed", "Pending", "%"):
        table.add_column(column)
    for batch, stats in rows:
        table.add_row(
            batch.batch_id,
            batch.created_at.strftime("%Y-%m-%d %H:%M"),
            str(stats.total),
            str(stats.completed),
            str(stats.failed),
            str(stats.pending + stats.processing),
            str(stats.completion_percentage),
        )
    console.print(table)


@app.command()
def show(slug: str = typer.Argument(..., help="Article slug")):
    """Print a file-stored article's metadata and outline."""
    settings = get_settings()
    try:
        article = asyncio.run(FileArticleRepository(settings.articles_dir).load(slug))
    except BlogBatchError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)
    if article is None:
        console.print(f"[red]Error: no article {escape(slug)!r} in {settings.articles_dir}[/red]")
        raise typer.Exit(1)

    console.print(f"[bold]{escape(article.title)}[/bold]  ({escape(article.category)}, {article.read_time})")
    console.print(escape(article.meta_description))
    for block in article.content:
        if isinstance(block, HeadingBlock):
            console.print(f"{'  ' * (block.level - 1)}- {escape(block.content)}")


if __name__ == "__main__":
    app()

"""
Enrichment CLI Commands
=======================

CLI commands for enqueuing and inspecting review enrichment jobs, plus
one-off lookups against the individual strategies.
"""

from __future__ import annotations

import asyncio
from typing import Any, List, Optional

import httpx
import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from brew_resolver.core.errors import EnrichmentJobError, ReviewNotFoundError
from brew_resolver.core.schema import LabelGuess, RatingSlot, Review
from brew_resolver.db.engine import get_session, init_db
from brew_resolver.db.repositories import ReviewRepository
from brew_resolver.ingestion.config import get_default_config
from brew_resolver.ingestion.crawler import Crawler
from brew_resolver.ingestion.jobs import ReviewQueue, process_review_sync
from brew_resolver.ingestion.search_engine import SearchEngineScraper
from brew_resolver.ingestion.site_extractor import DirectSiteExtractor

console = Console()
enrich_app = typer.Typer(help="Review enrichment commands")


def _build_guesses(beers: list[str], breweries: list[str]) -> list[LabelGuess]:
    """Pair each --beer with the --brewery at the same position, if any."""
    return [
        LabelGuess(
            beer_name=beer,
            brewery_name_hint=breweries[index] if index < len(breweries) else None,
            slot_index=index,
        )
        for index, beer in enumerate(beers)
    ]


def _ensure_review(review_id: Optional[str], guesses: list[LabelGuess]) -> str:
    """Return the id of an existing review, or create one with a slot per bottle."""
    init_db()
    with get_session() as session:
        reviews = ReviewRepository(session)
        if review_id:
            if reviews.get_by_id(review_id) is None:
                rprint(f"[red]Error:[/red] Review '{review_id}' not found")
                raise typer.Exit(1)
            return review_id

        review = reviews.create(
            Review(ratings=[RatingSlot(slot_index=g.slot_index or 0, bottle_label=g.beer_name) for g in guesses])
        )
        session.commit()
        rprint(f"Created review [bold]{review.id}[/bold]")
        return review.id


@enrich_app.command("run")
def run_enrichment(
    beers: List[str] = typer.Option(..., "--beer", "-b", help="Beer name from the label (repeatable)"),
    breweries: List[str] = typer.Option([], "--brewery", help="Brewery hint for the beer at the same position"),
    review_id: Optional[str] = typer.Option(None, "--review-id", "-r", help="Existing review to enrich"),
    priority: Optional[int] = typer.Option(None, "--priority", "-p", help="Lower runs sooner"),
    sync: bool = typer.Option(False, "--sync", help="Run synchronously (blocking)"),
) -> None:
    """
    Enrich a review with the bottles read from its labels.

    Examples:
        brew-resolver enrich run --beer Tipopils --brewery "Birrificio Italiano" --sync
        brew-resolver enrich run -r 1b2c... -b "Re Ale" -b "Bibock" --priority 1
    """
    guesses = _build_guesses(beers, breweries)
    target = _ensure_review(review_id, guesses)

    rprint(f"\n[bold]Enriching review:[/bold] {target}")
    for guess in guesses:
        rprint(f"  • {guess.beer_name}" + (f" ({guess.brewery_name_hint})" if guess.brewery_name_hint else ""))

    if sync:
        rprint("\n[dim]Running synchronously...[/dim]\n")

        async def report(percent: int, step: Any, detail: Optional[str]) -> None:
            console.log(f"{percent:3d}% {step.value}" + (f" - {detail}" if detail else ""))

        try:
            result = asyncio.run(process_review_sync(target, guesses, progress=report))
        except (EnrichmentJobError, ReviewNotFoundError) as e:
            rprint(f"\n[red]Enrichment failed:[/red] {e}")
            raise typer.Exit(1)

        _display_result(result.to_dict())
        return

    rprint("\n[dim]Enqueueing job for async processing...[/dim]")

    async def enqueue() -> str:
        queue = await ReviewQueue.connect()
        try:
            return await queue.enqueue_review(target, guesses, priority)
        finally:
            await queue.close()

    try:
        job_id = asyncio.run(enqueue())
    except Exception as e:
        rprint(f"\n[red]Error:[/red] Failed to enqueue job: {e}")
        rprint("\nMake sure Redis is running")
        raise typer.Exit(1)

    rprint("\n[green]Job enqueued successfully![/green]")
    rprint(f"Job ID: [bold]{job_id}[/bold]")
    rprint("\nCheck status with:")
    rprint(f"  brew-resolver enrich status {job_id}")


@enrich_app.command("worker")
def start_worker(
    burst: bool = typer.Option(False, "--burst", help="Run in burst mode (exit when queue empty)"),
) -> None:
    """
    Start the enrichment worker.

    Examples:
        brew-resolver enrich worker
        brew-resolver enrich worker --burst
    """
    from arq import run_worker

    from brew_resolver.ingestion.jobs import WorkerSettings

    rprint("[bold]Starting enrichment worker...[/bold]")
    rprint("Press Ctrl+C to stop\n")
    try:
        run_worker(WorkerSettings, burst=burst)
    except Exception as e:
        rprint(f"[red]Error:[/red] Worker failed: {e}")
        rprint("\nMake sure Redis is running")
        raise typer.Exit(1)


async def _with_queue(action: str, *args: Any) -> Any:
    queue = await ReviewQueue.connect()
    try:
        return await getattr(queue, action)(*args)
    finally:
        await queue.close()


@enrich_app.command("status")
def job_status(
    job_id: str = typer.Argument(..., help="Job ID, e.g. review-<review id>"),
) -> None:
    """
    Check the status of an enrichment job.

    Examples:
        brew-resolver enrich status review-1b2c...
    """
    try:
        status = asyncio.run(_with_queue("get_job_status", job_id))
    except Exception as e:
        rprint(f"[red]Error:[/red] Failed to get job status: {e}")
        raise typer.Exit(1)

    if status["state"] == "not_found":
        rprint(f"[yellow]Job '{job_id}' not found[/yellow]")
        raise typer.Exit(1)

    rprint(f"\n[bold]Job: {job_id}[/bold]")
    rprint(f"  State: {status['state']}")
    rprint(f"  Attempts: {status['attempts']}")
    progress = status.get("progress")
    if progress:
        rprint(f"  Progress: {progress['percent']}% ({progress['step']})")
    if status.get("error"):
        rprint(f"  Error: [red]{status['error']}[/red]")
    if isinstance(status.get("result"), dict):
        _display_result(status["result"])


@enrich_app.command("stats")
def queue_stats() -> None:
    """Show job counts per state."""
    try:
        stats = asyncio.run(_with_queue("get_queue_stats"))
    except Exception as e:
        rprint(f"[red]Error:[/red] Failed to read queue: {e}")
        raise typer.Exit(1)

    table = Table(title="Enrichment Queue")
    table.add_column("State", style="bold")
    table.add_column("Jobs", justify="right")
    for state, count in stats.items():
        table.add_row(state, str(count))
    console.print(table)


@enrich_app.command("clean")
def clean_queue(
    completed_grace: Optional[int] = typer.Option(None, "--completed-grace", help="Seconds to keep completed jobs"),
    failed_grace: Optional[int] = typer.Option(None, "--failed-grace", help="Seconds to keep failed jobs"),
) -> None:
    """Remove old finished jobs."""
    try:
        removed = asyncio.run(_with_queue("clean_queue", completed_grace, failed_grace))
    except Exception as e:
        rprint(f"[red]Error:[/red] Failed to clean queue: {e}")
        raise typer.Exit(1)
    rprint(f"[green]Removed {removed} finished job(s)[/green]")


@enrich_app.command("extract-site")
def extract_site(
    url: str = typer.Argument(..., help="Brewery website"),
    beer: Optional[str] = typer.Option(None, "--beer", "-b", help="Also look for this beer's page"),
) -> None:
    """
    Crawl a brewery website and print the extracted facts.

    Examples:
        brew-resolver enrich extract-site https://www.birrificio-italiano.it --beer Tipopils
    """
    config = get_default_config()

    async def extract() -> tuple[Any, Any]:
        async with httpx.AsyncClient(follow_redirects=True) as client:
            extractor = DirectSiteExtractor(Crawler(client, config.global_config), config.site_extraction)
            brewery = await extractor.extract(url)
            beer_candidate = await extractor.extract_beer(url, beer) if beer else None
            return brewery, beer_candidate

    with console.status("[bold blue]Crawling...[/bold blue]"):
        brewery, beer_candidate = asyncio.run(extract())

    if brewery is None:
        rprint(f"[yellow]Nothing extracted from {url}[/yellow]")
        raise typer.Exit(1)

    _display_facts(f"Brewery ({brewery.confidence:.0%})", brewery.facts.model_dump(exclude_defaults=True))
    if beer:
        if beer_candidate is None:
            rprint(f"[yellow]No page found for beer '{beer}'[/yellow]")
        else:
            _display_facts(f"Beer ({beer_candidate.confidence:.0%})", beer_candidate.facts.model_dump(exclude_defaults=True))


@enrich_app.command("search")
def search(
    query: str = typer.Argument(..., help="Free-text query"),
) -> None:
    """
    Run a search engine query and list the organic results.

    Examples:
        brew-resolver enrich search "Tipopils birrificio produttore"
    """
    config = get_default_config()

    async def run_search() -> list[Any]:
        async with httpx.AsyncClient(follow_redirects=True) as client:
            scraper = SearchEngineScraper(Crawler(client, config.global_config), config.search_engine)
            return await scraper.search(query)

    results = asyncio.run(run_search())
    if not results:
        rprint("[yellow]No results[/yellow]")
        return

    table = Table(title=f"Results for '{query}'")
    table.add_column("#", justify="right")
    table.add_column("Title", style="bold")
    table.add_column("URL")
    for index, result in enumerate(results, start=1):
        table.add_row(str(index), result.title, result.url)
    console.print(table)


def _display_facts(title: str, facts: dict[str, Any]) -> None:
    table = Table(title=title)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    for name, value in facts.items():
        table.add_row(name, str(value))
    console.print(table)


def _display_result(result: dict) -> None:
    """Display an enrichment result."""
    status = result.get("status", "unknown")
    status_color = {
        "completed": "green",
        "needs_admin_review": "yellow",
        "failed": "red",
    }.get(status, "white")

    rprint("\n[bold]Results:[/bold]")
    rprint(f"  Status: [{status_color}]{status}[/{status_color}]")
    rprint(f"  Bottles processed: {result.get('bottles_processed', 0)}")
    if result.get("processing_time_ms"):
        rprint(f"  Duration: {result['processing_time_ms'] / 1000:.1f}s")

    bottles = result.get("bottles", [])
    if bottles:
        table = Table(title="Bottles")
        table.add_column("Label")
        table.add_column("Brewery", style="bold")
        table.add_column("Beer")
        table.add_column("Source")
        table.add_column("Confidence", justify="right")
        for bottle in bottles:
            table.add_row(
                bottle["label_beer_name"],
                bottle["brewery_name"] or "-",
                bottle["beer_name"] or "-",
                bottle["data_source"],
                f"{bottle['confidence']:.2f}",
            )
        console.print(table)

    errors = result.get("errors", [])
    if errors:
        rprint(f"\n[bold red]Errors ({len(errors)}):[/bold red]")
        for error in errors[:10]:
            rprint(f"  • {error}")
        if len(errors) > 10:
            rprint(f"  ... and {len(errors) - 10} more")

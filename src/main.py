"""CLI entry point for the Backlink Engine."""

import asyncio

import click
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config.settings import settings
from src.jobs.scheduler import Scheduler
from src.jobs.worker import Workers
from src.models.errors import BacklinkEngineError, DuplicateProspectError
from src.pipeline.gatekeeper import load_auto_enrollment_config, save_auto_enrollment_config
from src.pipeline.orchestrator import BatchResult, EnrichmentPipeline
from src.services.database import SupabaseRepository
from src.services.event_log import EventLog
from src.services.repository import InMemoryRepository, Repository
from src.services.suppression import SuppressionList
from src.utils.domain import normalize_domain
from src.utils.logger import get_logger, setup_logging

console = Console()
logger = get_logger("cli")

TIER_COLORS = {1: "red", 2: "yellow", 3: "blue", 4: "white"}


def _repository() -> Repository:
    if SupabaseRepository.is_configured():
        return SupabaseRepository()
    logger.warning("using_in_memory_repository")
    return InMemoryRepository()


def _run(coro):
    """Run a coroutine, turning domain errors into a clean CLI abort."""
    try:
        return asyncio.run(coro)
    except BacklinkEngineError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise click.Abort()


async def _with_pipeline(action):
    pipeline = EnrichmentPipeline(_repository())
    try:
        return await action(pipeline)
    finally:
        await pipeline.close()


@click.group()
@click.version_option(version="0.1.0", prog_name="Backlink Engine")
def cli():
    """Backlink Engine.

    Enrich prospect domains with authority, language, country and contact
    signals, score them, and auto-enroll the qualified ones into outreach
    campaigns.
    """
    setup_logging()


@cli.command()
@click.argument("domain")
@click.option("--category", default="blogger", help="Prospect category")
@click.option("--language", default=None, help="Known language code")
@click.option("--country", default=None, help="Known ISO country code")
@click.option("--email", default=None, help="Known contact email")
def add(domain: str, category: str, language: str | None, country: str | None, email: str | None):
    """Add a prospect by DOMAIN (any URL form is accepted).

    Example:
        backlink-engine add https://www.example.fr/blog --country FR
    """

    async def create():
        repository = _repository()
        prospect = await repository.create_prospect(
            domain,
            category=category,
            language=language,
            country=country.upper() if country else None,
        )
        if email:
            if await SuppressionList(repository).is_suppressed(email):
                console.print(f"[yellow]{email} is suppressed, contact not created[/yellow]")
            else:
                await repository.create_contact(prospect.id, email)
        return prospect

    try:
        prospect = asyncio.run(create())
    except DuplicateProspectError as e:
        console.print(f"[red]Conflict:[/red] {e.domain} already exists (id {e.existing_id})")
        raise click.Abort()
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise click.Abort()

    console.print(f"[green]Created prospect {prospect.id}[/green] ({prospect.domain})")


@cli.command()
@click.argument("prospect_id", type=int)
@click.option("--no-enroll", is_flag=True, help="Skip the auto-enrollment gate")
def enrich(prospect_id: int, no_enroll: bool):
    """Enrich one prospect and run it through the auto-enrollment gate."""

    outcome = _run(
        _with_pipeline(lambda p: p.process_prospect(prospect_id, auto_enroll=not no_enroll))
    )

    if not outcome.enriched:
        console.print(f"[yellow]Skipped:[/yellow] {outcome.skipped_reason}")
        return

    color = TIER_COLORS[outcome.tier]
    console.print(
        f"Score [bold]{outcome.score}[/bold], tier [{color}]T{outcome.tier}[/{color}]"
    )
    if outcome.gate:
        if outcome.gate.enrolled:
            console.print(f"[green]Enrolled[/green] in campaign {outcome.gate.campaign_id}")
        else:
            console.print(f"[yellow]Not enrolled:[/yellow] {outcome.gate.stage} / {outcome.gate.reason}")


@cli.command("enrich-batch")
@click.option("--limit", "-n", default=None, type=int, help="Maximum prospects to enrich")
@click.option("--no-enroll", is_flag=True, help="Skip the auto-enrollment gate")
def enrich_batch(limit: int | None, no_enroll: bool):
    """Enrich NEW prospects that were never scored."""
    result = _run(
        _with_pipeline(lambda p: p.run_enrichment_batch(limit, auto_enroll=not no_enroll))
    )
    _display_batch(result)


def _display_batch(result: BatchResult):
    table = Table(title="Enrichment Batch", show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Processed", str(result.processed))
    table.add_row("Enriched", str(result.enriched))
    table.add_row("Skipped", str(result.skipped))
    table.add_row("Failed", str(result.failed))
    table.add_row("Auto-enrolled", str(result.enrolled))
    if result.duration_seconds:
        table.add_row("Duration", f"{result.duration_seconds:.1f}s")

    console.print(table)

    tiers = {1: 0, 2: 0, 3: 0, 4: 0}
    for outcome in result.outcomes:
        if outcome.tier:
            tiers[outcome.tier] += 1
    if any(tiers.values()):
        tier_table = Table(title="Tier Breakdown", show_header=True)
        tier_table.add_column("Tier", style="bold")
        tier_table.add_column("Count")
        for tier, count in tiers.items():
            color = TIER_COLORS[tier]
            tier_table.add_row(f"[{color}]T{tier}[/{color}]", str(count))
        console.print(tier_table)


@cli.command("enroll-sweep")
@click.option("--limit", "-n", default=None, type=int, help="Maximum prospects to evaluate")
def enroll_sweep(limit: int | None):
    """Run the auto-enrollment gate over READY_TO_CONTACT prospects."""
    result = _run(_with_pipeline(lambda p: p.run_enrollment_sweep(limit)))

    console.print(
        f"Enrolled [green]{result.enrolled}[/green], skipped {result.skipped}, "
        f"failed [red]{result.failed}[/red]"
        + (" [yellow](throttled)[/yellow]" if result.throttled else "")
    )
    for decision in result.decisions:
        if not decision.enrolled:
            console.print(f"  {decision.prospect_id}: {decision.stage} / {decision.reason}")


@cli.command()
@click.argument("prospect_id", type=int)
@click.argument("campaign_id", type=int)
def enroll(prospect_id: int, campaign_id: int):
    """Enroll a prospect into a specific campaign."""
    result = _run(_with_pipeline(lambda p: p.enroll_prospect(prospect_id, campaign_id)))
    if result.success:
        console.print(f"[green]Enrolled[/green] (enrollment {result.enrollment_id})")
    else:
        console.print(f"[yellow]Not enrolled:[/yellow] {result.reason}")


@cli.command()
@click.argument("email")
@click.option("--reason", default="manual", help="Why the email is suppressed")
def suppress(email: str, reason: str):
    """Add EMAIL to the suppression list."""

    async def add():
        return await SuppressionList(_repository()).add(email, reason, source="cli")

    try:
        entry = asyncio.run(add())
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise click.Abort()
    console.print(f"[green]Suppressed[/green] {entry.email_normalized} ({entry.reason})")


@cli.command()
@click.argument("prospect_id", type=int)
@click.option("--limit", "-n", default=50, type=int, help="Number of most recent events")
def events(prospect_id: int, limit: int):
    """Show the event history of a prospect."""

    async def history():
        return await EventLog(_repository()).history(prospect_id, limit=limit)

    rows = asyncio.run(history())
    table = Table(title=f"Events for prospect {prospect_id}", show_header=True)
    table.add_column("When", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Source")
    table.add_column("Payload")
    for event in rows:
        payload = event.payload.model_dump(mode="json", exclude={"type"})
        table.add_row(
            event.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            event.type,
            event.source,
            ", ".join(f"{k}={v}" for k, v in payload.items()),
        )
    console.print(table)


@cli.command()
@click.argument("domain")
def lookup(domain: str):
    """Show a prospect by domain."""

    async def find():
        return await _repository().get_prospect_by_domain(normalize_domain(domain))

    prospect = asyncio.run(find())
    if prospect is None:
        console.print(f"[yellow]No prospect for {domain}[/yellow]")
        return

    table = Table(title=prospect.domain, show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    for key, value in prospect.model_dump(mode="json").items():
        table.add_row(key, str(value))
    console.print(table)


@cli.command()
def run():
    """Run worker pools and the periodic scheduler until interrupted."""
    console.print(Panel.fit(
        f"[bold blue]Backlink Engine workers[/bold blue]\n\n"
        f"Enrichment: every {settings.enrichment_interval_seconds}s, "
        f"concurrency {settings.enrichment_concurrency}\n"
        f"Auto-enrollment: every {settings.auto_enrollment_interval_seconds}s, "
        f"concurrency {settings.enrollment_concurrency}",
        title="Starting",
    ))

    async def main():
        pipeline = EnrichmentPipeline(_repository())
        scheduler = Scheduler(Workers(pipeline))
        try:
            await scheduler.run_forever()
        finally:
            await pipeline.close()

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        console.print("[cyan]Stopped[/cyan]")


@cli.command()
@click.option("--enable/--disable", default=None, help="Turn auto-enrollment on or off")
@click.option("--max-per-hour", type=int, default=None)
@click.option("--max-per-day", type=int, default=None)
@click.option("--min-score", type=int, default=None)
@click.option("--min-tier", type=int, default=None)
def config(
    enable: bool | None,
    max_per_hour: int | None,
    max_per_day: int | None,
    min_score: int | None,
    min_tier: int | None,
):
    """Show configuration, optionally updating auto-enrollment rules."""
    table = Table(title="Current Configuration", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for key, value in settings.model_dump().items():
        # Hide sensitive values
        if "key" in key.lower() or "secret" in key.lower() or "access_id" in key.lower():
            value = "***" if value else "Not set"
        table.add_row(key, str(value))
    console.print(table)

    updates = {
        "enabled": enable,
        "max_per_hour": max_per_hour,
        "max_per_day": max_per_day,
        "min_score": min_score,
        "min_tier": min_tier,
    }
    updates = {k: v for k, v in updates.items() if v is not None}

    async def auto_enrollment():
        repository = _repository()
        if updates:
            return await save_auto_enrollment_config(repository, **updates)
        return await load_auto_enrollment_config(repository)

    try:
        current = asyncio.run(auto_enrollment())
    except ValidationError as e:
        console.print(f"[red]Invalid auto-enrollment settings:[/red] {e}")
        raise click.Abort()
    auto_table = Table(title="Auto-enrollment", show_header=True)
    auto_table.add_column("Rule", style="cyan")
    auto_table.add_column("Value", style="green")
    for key, value in current.model_dump().items():
        auto_table.add_row(key, str(value))
    console.print(auto_table)


if __name__ == "__main__":
    cli()

"""
Main application entry point for MarketScout.

Provides the CLI for running research jobs and inspecting providers.
"""

import json
import sys
from typing import Optional, Tuple

import click
from rich.console import Console
from rich.table import Table

from marketscout.core.config import configuration_summary, get_settings, validate_required_settings
from marketscout.core.exceptions import MarketScoutError, ValidationError
from marketscout.core.logging import set_correlation_id, setup_logging
from marketscout.core.models import Job, JobStatus, ResearchMode
from marketscout.services.container import ResearchContext, build_context

console = Console()


def _context(ctx) -> ResearchContext:
    """Research stack for this invocation, built on first use."""
    if "context" not in ctx.obj:
        ctx.obj["context"] = build_context(get_settings())
    return ctx.obj["context"]


def _fail(ctx, label: str, error: Exception) -> None:
    console.print(f"[red]{label}:[/red] {error}")
    if ctx.obj.get("debug"):
        import traceback

        console.print(traceback.format_exc())
    sys.exit(1)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--correlation-id", help="Set correlation ID for request tracing")
@click.pass_context
def main(ctx, debug: bool, correlation_id: Optional[str]):
    """Multi-provider company research.

    Researches a company through several agent-framework providers backed by a
    generative-text API, then scores and compares the results.
    """
    ctx.ensure_object(dict)

    settings = get_settings()
    setup_logging(debug=debug or settings.debug, rich_output=not settings.log_json)
    set_correlation_id(correlation_id)

    ctx.obj["debug"] = debug


@main.command()
@click.argument("company_name")
@click.option(
    "--mode",
    type=click.Choice([m.value for m in ResearchMode]),
    default=ResearchMode.PARALLEL.value,
    show_default=True,
    help="Run providers concurrently or as a chain",
)
@click.option(
    "--provider",
    "providers",
    multiple=True,
    help="Provider to use (repeatable); defaults to every enabled provider",
)
@click.option("--json", "as_json", is_flag=True, help="Print the job as JSON")
@click.option(
    "--export",
    "export_format",
    type=click.Choice(["json", "csv"]),
    help="Also print the researched companies in this format",
)
@click.pass_context
def research(
    ctx,
    company_name: str,
    mode: str,
    providers: Tuple[str, ...],
    as_json: bool,
    export_format: Optional[str],
):
    """Research a company with one or more providers."""
    try:
        research_ctx = _context(ctx)
        names = list(providers) or [p.name for p in research_ctx.registry.list()]
        if not names:
            console.print("[red]No providers are enabled.[/red] Set e.g. CREWAI_ENABLED=true")
            sys.exit(1)

        if not as_json:
            console.print(f"[blue]Researching {company_name} ({mode}: {', '.join(names)})[/blue]")
        job = research_ctx.orchestrator.research(company_name, names, ResearchMode(mode))

        if as_json:
            click.echo(json.dumps(job.to_dict(), indent=2))
        else:
            _display_job(job)

        if export_format:
            click.echo(research_ctx.store.export(export_format))

        sys.exit(1 if job.status is JobStatus.FAILED else 0)

    except ValidationError as e:
        console.print(f"[red]Invalid request:[/red] {e}")
        sys.exit(2)
    except MarketScoutError as e:
        _fail(ctx, "Research Error", e)
    except Exception as e:
        _fail(ctx, "Unexpected Error", e)


@main.command()
@click.pass_context
def providers(ctx):
    """List enabled providers."""
    try:
        metas = _context(ctx).registry.list()
        if not metas:
            console.print("[yellow]No providers are enabled.[/yellow]")
            sys.exit(0)

        table = Table(title="Research Providers")
        table.add_column("Name", style="cyan")
        table.add_column("Description", style="white")
        table.add_column("Version", style="dim")
        table.add_column("Capabilities", style="green")
        table.add_column("Limitations", style="yellow")

        for meta in metas:
            table.add_row(
                meta.name,
                meta.description,
                meta.version,
                "\n".join(meta.capabilities),
                "\n".join(meta.limitations),
            )

        console.print(table)
        sys.exit(0)

    except Exception as e:
        _fail(ctx, "Provider Error", e)


@main.command()
@click.argument("names", nargs=-1, required=True)
@click.pass_context
def compare(ctx, names: Tuple[str, ...]):
    """Compare providers side by side."""
    try:
        comparison = _context(ctx).registry.compare(names)
        missing = [n for n in names if n not in comparison]
        if missing:
            console.print(f"[yellow]Unavailable providers skipped:[/yellow] {', '.join(missing)}")

        table = Table(title="Provider Comparison")
        table.add_column("Provider", style="cyan")
        table.add_column("Topology", style="magenta")
        table.add_column("Capabilities", style="white")
        table.add_column("Runs", justify="right")
        table.add_column("Completion %", justify="right")
        table.add_column("Avg Time (s)", justify="right")

        for name, entry in comparison.items():
            perf = entry["performance"] or {}
            table.add_row(
                name,
                entry["details"].get("workflow", {}).get("topology", "-"),
                str(len(entry["details"]["capabilities"])),
                str(perf.get("total_runs", 0)),
                f"{perf.get('completion_rate_pct', 0.0):.1f}",
                f"{perf.get('avg_run_time_seconds', 0.0):.2f}",
            )

        console.print(table)
        sys.exit(0 if comparison else 1)

    except Exception as e:
        _fail(ctx, "Comparison Error", e)


@main.command()
@click.argument("name", required=False)
@click.pass_context
def performance(ctx, name: Optional[str]):
    """Show rolling performance statistics."""
    try:
        research_ctx = _context(ctx)
        if name:
            record = research_ctx.registry.get_performance(name)
            if record is None:
                console.print(f"[red]Provider '{name}' not found or not enabled[/red]")
                sys.exit(1)
            records = [record]
        else:
            research_ctx.registry.initialize()
            records = research_ctx.tracker.all()

        table = Table(title="Provider Performance")
        table.add_column("Provider", style="cyan")
        table.add_column("Runs", justify="right")
        table.add_column("Succeeded", justify="right", style="green")
        table.add_column("Failed", justify="right", style="red")
        table.add_column("Avg Time (s)", justify="right")
        table.add_column("Completion %", justify="right")
        table.add_column("API Success %", justify="right")

        for rec in records:
            table.add_row(
                rec.provider_name,
                str(rec.total_runs),
                str(rec.successful_runs),
                str(rec.failed_runs),
                f"{rec.avg_run_time_seconds:.2f}",
                f"{rec.completion_rate_pct:.1f}",
                f"{rec.api_success_rate_pct:.1f}",
            )

        console.print(table)
        sys.exit(0)

    except Exception as e:
        _fail(ctx, "Performance Error", e)


@main.command()
@click.option("--funding-stage", type=float, help="Weight of the funding sub-score")
@click.option("--market-buzz", type=float, help="Weight of the market buzz sub-score")
@click.option("--strategic-relevance", type=float, help="Weight of the relevance sub-score")
@click.pass_context
def weights(
    ctx,
    funding_stage: Optional[float],
    market_buzz: Optional[float],
    strategic_relevance: Optional[float],
):
    """Show scoring weights, or validate and apply new ones."""
    try:
        scoring = _context(ctx).scoring
        changes = {
            key: value
            for key, value in (
                ("funding_stage", funding_stage),
                ("market_buzz", market_buzz),
                ("strategic_relevance", strategic_relevance),
            )
            if value is not None
        }
        if changes:
            scoring.update_weights(changes)
            console.print("[green]Scoring weights updated[/green]")

        table = Table(title="Scoring Weights")
        table.add_column("Component", style="cyan")
        table.add_column("Weight", justify="right")
        for key, value in scoring.weights.model_dump().items():
            table.add_row(key.replace("_", " ").title(), f"{value:.2f}")
        console.print(table)
        sys.exit(0)

    except ValidationError as e:
        console.print(f"[red]Invalid weights:[/red] {e}")
        sys.exit(2)
    except Exception as e:
        _fail(ctx, "Weights Error", e)


@main.command()
@click.argument("companies", nargs=-1, required=True)
@click.option("--provider", "providers", multiple=True, help="Provider to benchmark (repeatable)")
@click.pass_context
def benchmark(ctx, companies: Tuple[str, ...], providers: Tuple[str, ...]):
    """Benchmark providers against a list of companies."""
    try:
        research_ctx = _context(ctx)
        names = list(providers) or [p.name for p in research_ctx.registry.list()]
        results = research_ctx.benchmark.run(names, list(companies))

        table = Table(title=f"Benchmark ({len(results['test_cases'])} companies)")
        table.add_column("Provider", style="cyan")
        table.add_column("Success", justify="right")
        table.add_column("Avg Time (s)", justify="right")
        table.add_column("Speed", justify="right")
        table.add_column("Completeness", justify="right")
        table.add_column("Credibility", justify="right")
        table.add_column("Total", justify="right", style="bold")

        for name, score in sorted(
            results["scores"].items(), key=lambda item: item[1]["total_score"], reverse=True
        ):
            stats = results["providers"][name]
            table.add_row(
                name,
                f"{stats['successful_tests']}/{stats['total_tests']}",
                f"{stats['average_execution_time']:.2f}",
                f"{score['execution_time_score']:.2f}",
                f"{score['completeness_score']:.2f}",
                f"{score['source_credibility_score']:.2f}",
                f"{score['total_score']:.2f}",
            )

        console.print(table)
        sys.exit(0)

    except ValidationError as e:
        console.print(f"[red]Invalid benchmark:[/red] {e}")
        sys.exit(2)
    except Exception as e:
        _fail(ctx, "Benchmark Error", e)


@main.command()
@click.pass_context
def config(ctx):
    """Display current configuration."""
    try:
        console.print("[blue]MarketScout Configuration[/blue]")

        missing = validate_required_settings()
        if missing:
            console.print("[red]Configuration Issues:[/red]")
            for item in missing:
                console.print(f"  - Missing: {item}")
            console.print()
        else:
            console.print("[green]Configuration Valid[/green]")
            console.print()

        table = Table(title="Settings")
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="white")
        for key, value in configuration_summary().items():
            table.add_row(key, str(value))
        console.print(table)

        sys.exit(0 if not missing else 1)

    except Exception as e:
        _fail(ctx, "Configuration Error", e)


def _display_job(job: Job) -> None:
    """Display a finished research job."""
    status = job.status.value
    if job.status is JobStatus.COMPLETED:
        console.print(f"[green]Research completed[/green] for {job.company_name}")
    elif job.status is JobStatus.PARTIAL:
        console.print(f"[yellow]Research partially completed[/yellow] for {job.company_name}")
    else:
        console.print(f"[red]Research failed[/red] for {job.company_name}: {job.error}")

    table = Table(title=f"Job {job.id[:8]} ({job.mode.value}, {status})")
    table.add_column("Provider", style="cyan")
    table.add_column("Status", style="white")
    table.add_column("Score", justify="right")
    table.add_column("Focus Area")
    table.add_column("Funding")
    table.add_column("Founded", justify="right")
    table.add_column("Error", style="red")

    for name in job.providers:
        run = job.provider_status[name]
        entity = job.provider_results.get(name)
        score = entity.score_breakdown.total_score if entity and entity.score_breakdown else None
        table.add_row(
            name,
            run.status.value,
            str(score) if score is not None else "-",
            (entity.focus_area if entity else None) or "-",
            (entity.funding_amount if entity else None) or "-",
            str(entity.founding_year) if entity and entity.founding_year else "-",
            (run.error or "")[:80],
        )

    console.print(table)
    if job.duration_seconds is not None:
        console.print(f"Duration: {job.duration_seconds:.2f}s")

    for name in job.providers:
        entity = job.provider_results.get(name)
        if entity and entity.summary:
            console.print(f"\n[bold]{name}[/bold]: {entity.summary}")


if __name__ == "__main__":
    main()

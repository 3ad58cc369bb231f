"""CLI entry-point: run pipeline stages by hand or from cron."""

import logging
import random

import typer
from rich.console import Console
from rich.table import Table

from reelpipe.catalog import UnknownPersonaError
from reelpipe.config import get_settings
from reelpipe.formats.rules import load_format_rules
from reelpipe.formats.selector import format_distribution, select_format
from reelpipe.pipeline import (
    StageSummary,
    assemble_video,
    create_frames,
    enqueue as enqueue_jobs,
    generate_content,
    get_pipeline_context,
    process_pending,
    recover_jobs,
    upload_videos,
)
from reelpipe.tenants.models import SECRET_FIELDS, Branding, Tenant
from reelpipe.tenants.registry import TenantNotFoundError
from reelpipe.tenants.vault import FernetVault, VaultError

app = typer.Typer(help="Multi-tenant short-form video pipeline")


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _print_summary(console: Console, summary: StageSummary) -> None:
    if summary.items:
        table = Table(title=summary.stage)
        table.add_column("job")
        table.add_column("result")
        table.add_column("detail")
        for item in summary.items:
            result = "[green]ok[/green]" if item.ok else "[red]failed[/red]"
            detail = item.error or ", ".join(f"{k}={v}" for k, v in item.detail.items())
            table.add_row(item.job_id or "-", result, detail)
        console.print(table)
    console.print(summary.text())


def _run(console: Console, stage) -> StageSummary:
    try:
        summary = stage()
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    _print_summary(console, summary)
    if summary.failed:
        raise typer.Exit(1)
    return summary


@app.command()
def generate(
    tenant: str = typer.Option(None, "--tenant", help="Tenant id (default: every active tenant)"),
    persona: list[str] = typer.Option(default=[], help="Persona key(s); default from schedule / tenant"),
    count: int = typer.Option(None, help="Units per tenant (default REELPIPE_GENERATE_BATCH_SIZE)"),
    pending: bool = typer.Option(False, "--pending", help="Advance enqueued step-1 jobs instead of planning"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Generate content and create jobs ready for frame creation."""
    _setup_logging(verbose)
    console = Console()
    ctx = get_pipeline_context()
    if pending:
        _run(console, lambda: process_pending(ctx, tenant, count))
    else:
        _run(console, lambda: generate_content(ctx, tenant, persona or None, count))


@app.command()
def enqueue(
    tenant: str = typer.Option(..., "--tenant", help="Tenant id"),
    persona: list[str] = typer.Option(default=[], help="Persona key(s)"),
    count: int = typer.Option(None, help="Jobs to create"),
):
    """Seed pending step-1 jobs for a later `generate --pending`."""
    console = Console()
    ctx = get_pipeline_context()
    try:
        jobs = enqueue_jobs(ctx, tenant, persona or None, count)
    except (TenantNotFoundError, UnknownPersonaError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    for job in jobs:
        console.print(f"{job.id}  {job.persona}/{job.topic}")
    console.print(f"[green]Enqueued {len(jobs)} jobs.[/green]")


@app.command()
def frames(
    tenant: str = typer.Option(None, "--tenant", help="Only claim this tenant's jobs"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Render frames for a batch of generated jobs."""
    _setup_logging(verbose)
    console = Console()
    ctx = get_pipeline_context()
    _run(console, lambda: create_frames(ctx, tenant))


@app.command()
def assemble(
    tenant: str = typer.Option(None, "--tenant", help="Only claim this tenant's jobs"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Assemble one video from its frames."""
    _setup_logging(verbose)
    console = Console()
    ctx = get_pipeline_context()
    _run(console, lambda: assemble_video(ctx, tenant))


@app.command()
def upload(
    tenant: str = typer.Option(None, "--tenant", help="Only claim this tenant's jobs (ignores schedule)"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Upload one assembled video."""
    _setup_logging(verbose)
    console = Console()
    ctx = get_pipeline_context()
    _run(console, lambda: upload_videos(ctx, tenant))


@app.command()
def recover(verbose: bool = typer.Option(False, "--verbose", "-v")):
    """Run the recovery sweep on its own."""
    _setup_logging(verbose)
    console = Console()
    report = recover_jobs(get_pipeline_context())
    for job_id in report.exhausted:
        console.print(f"[yellow]{job_id}: recovery attempts exhausted[/yellow]")
    console.print(report.text())


@app.command()
def stats(
    tenant: str = typer.Option(None, "--tenant", help="Restrict to one tenant"),
    recent: int = typer.Option(10, help="Recent jobs to list"),
):
    """Show job counts by status and the most recent jobs."""
    console = Console()
    ctx = get_pipeline_context()
    job_stats = ctx.store.stats(tenant)

    table = Table(title=f"Jobs ({job_stats.total})")
    table.add_column("status")
    table.add_column("count", justify="right")
    for status, count in sorted(job_stats.by_status.items()):
        table.add_row(status, str(count))
    console.print(table)

    if recent:
        jobs_table = Table(title="Recent")
        for col in ("id", "tenant", "persona/topic", "step", "status", "attempts", "error"):
            jobs_table.add_column(col)
        for job in ctx.store.recent(recent, tenant):
            jobs_table.add_row(
                job.id,
                job.tenant_id or "-",
                f"{job.persona}/{job.topic}",
                str(job.step),
                job.status.value,
                str(job.attempt_count),
                (job.error_message or "")[:60],
            )
        console.print(jobs_table)


@app.command("select-format")
def select_format_cmd(
    tenant: str = typer.Option(..., "--tenant", help="Tenant id"),
    persona: str = typer.Option(..., "--persona", help="Persona key"),
    topic: str = typer.Option(..., "--topic", help="Topic key"),
    recent: list[str] = typer.Option(default=[], help="Recent formats, most recent first"),
    samples: int = typer.Option(1000, help="Draws to simulate"),
    seed: int = typer.Option(None, help="RNG seed"),
):
    """Show configured weights and the simulated selection mix for one topic."""
    console = Console()
    rules = load_format_rules()
    configured = format_distribution(tenant, persona, rules)
    if not configured:
        console.print(f"[yellow]No rule for {tenant}/{persona}; always '{rules.default_fallback}'.[/yellow]")
        return
    rng = random.Random(seed)
    counts: dict[str, int] = {fmt: 0 for fmt in configured}
    for _ in range(samples):
        choice = select_format(tenant, persona, topic, recent, rules=rules, rng=rng)
        counts[choice] = counts.get(choice, 0) + 1

    table = Table(title=f"{tenant}/{persona} · {topic}")
    table.add_column("format")
    table.add_column("configured %", justify="right")
    table.add_column("selected %", justify="right")
    for fmt, pct in configured.items():
        table.add_row(fmt, f"{pct:.1f}", f"{100 * counts.get(fmt, 0) / max(samples, 1):.1f}")
    console.print(table)


@app.command("add-tenant")
def add_tenant(
    tenant_id: str = typer.Argument(..., help="Tenant id"),
    name: str = typer.Option("", help="Display name"),
    persona: list[str] = typer.Option(default=[], help="Persona key(s) the tenant publishes"),
    channel_name: str = typer.Option("", help="Channel name used in descriptions"),
):
    """Create or replace a tenant record (secrets are set with `set-secret`)."""
    console = Console()
    ctx = get_pipeline_context()
    existing = ctx.tenants.repository.get(tenant_id)
    tenant = Tenant(
        id=tenant_id,
        name=name or tenant_id,
        personas=list(persona),
        branding=Branding(channel_name=channel_name),
        encrypted=existing.encrypted if existing else {},
    )
    ctx.tenants.repository.save(tenant)
    ctx.tenants.invalidate(tenant_id)
    console.print(f"[green]Saved tenant {tenant_id}.[/green]")


@app.command("set-secret")
def set_secret(
    tenant_id: str = typer.Argument(..., help="Tenant id"),
    field: str = typer.Argument(..., help=f"One of: {', '.join(SECRET_FIELDS)}"),
    value: str = typer.Option(..., prompt=True, hide_input=True),
):
    """Encrypt and store one tenant secret."""
    console = Console()
    if field not in SECRET_FIELDS:
        console.print(f"[red]Error: unknown secret field '{field}'[/red]")
        raise typer.Exit(1)
    ctx = get_pipeline_context()
    vault = ctx.tenants.vault
    tenant = ctx.tenants.repository.get(tenant_id)
    if tenant is None or not isinstance(vault, FernetVault):
        console.print(f"[red]Error: unknown tenant '{tenant_id}' or no writable vault[/red]")
        raise typer.Exit(1)
    try:
        token = vault.encrypt(value)
    except VaultError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    ctx.tenants.update(tenant_id, encrypted={**tenant.encrypted, field: token})
    console.print(f"[green]Stored {field} for {tenant_id}.[/green]")


@app.command("gen-key")
def gen_key():
    """Print a new vault key for REELPIPE_VAULT_KEY."""
    Console().print(FernetVault.generate_key())


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind address"),
    port: int = typer.Option(None, help="Port (default from PORT)"),
):
    """Serve the HTTP stage triggers."""
    import uvicorn

    uvicorn.run("backend.main:app", host=host, port=port or get_settings().port)


if __name__ == "__main__":
    app()

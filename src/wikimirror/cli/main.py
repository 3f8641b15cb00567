import sys
from pathlib import Path

import typer

from ..core import config
from ..core.config import Settings
from ..core.errors import NotConfiguredError
from ..core.logging import log, setup_logging

app = typer.Typer(add_completion=False, help="wikimirror CLI")

DEBOUNCE_HELP = "Override MIRROR_DEBOUNCE_SECONDS for this run"


@app.callback()
def _init(
    config_file: str | None = typer.Option(
        None,
        "--config",
        help="Config file (.wikimirror.yaml auto-discovered)",
    ),
    log_format: str | None = typer.Option(None, "--log-format", help="json|plain|auto"),
) -> None:
    config.SETTINGS = Settings.load_config(config_file)
    setup_logging(log_format or config.SETTINGS.LOG_FORMAT)  # type: ignore[arg-type]


def _build_service(debounce: float | None):
    from ..mirror.service import MirrorService

    try:
        service = MirrorService.from_settings(config.SETTINGS, debounce_seconds=debounce)
    except NotConfiguredError as e:
        typer.echo(f"❌ Not configured: {e}", err=True)
        raise typer.Exit(1) from e
    service.start()
    return service


@app.command()
def version() -> None:
    from .. import __version__

    typer.echo(__version__)


@app.command()
def status() -> None:
    """Show whether the mirror is configured and the effective settings."""
    from tabulate import tabulate  # type: ignore

    settings = config.SETTINGS
    state = "configured" if settings.is_configured() else "NOT configured"
    typer.echo(f"wikimirror is {state}")
    rows = [[k, "" if v is None else v] for k, v in sorted(settings.redacted().items())]
    typer.echo(tabulate(rows, headers=["SETTING", "VALUE"], tablefmt="simple"))


@app.command()
def spaces() -> None:
    """List spaces in the content store."""
    from tabulate import tabulate  # type: ignore

    from ..adapters.confluence_api import ConfluenceClient

    client = ConfluenceClient(settings=config.SETTINGS)
    rows = sorted(
        ([s.key, s.name or "", s.type or "", "skip" if s.is_personal else "mirror"] for s in client.get_spaces()),
        key=lambda r: r[0],
    )
    if rows:
        typer.echo(tabulate(rows, headers=["KEY", "NAME", "TYPE", "MIRROR"], tablefmt="grid"))
    else:
        typer.echo("No spaces found.")
    log.info("cli.spaces.done", spaces_count=len(rows))


@app.command()
def reconcile(
    space: list[str] | None = typer.Option(None, "--space", help="Space key (repeatable); default all spaces"),
    debounce: float | None = typer.Option(None, "--debounce", help=DEBOUNCE_HELP),
) -> None:
    """Regenerate every page and delete orphaned artifacts."""
    from tabulate import tabulate  # type: ignore

    service = _build_service(debounce)
    try:
        if space:
            reports = [
                service.reconciler.reconcile(s)
                for s in service.store.get_spaces()
                if s.key in set(space)
            ]
            missing = set(space) - {r.space_key for r in reports}
            for key in sorted(missing):
                typer.echo(f"⚠️  Unknown space: {key}", err=True)
        else:
            reports = service.regenerate_all()
    finally:
        service.shutdown(drain=True)

    rows = [
        [r.space_key, "skipped" if r.skipped else r.pages_scheduled, len(r.orphans_deleted)]
        for r in reports
    ]
    typer.echo(tabulate(rows, headers=["SPACE", "PAGES", "ORPHANS"], tablefmt="simple"))
    typer.echo(
        f"✅ Regenerated {service.scheduler.completed} pages "
        f"({service.scheduler.failures} failures)"
    )


@app.command()
def regenerate(
    page_id: str = typer.Option(..., "--page-id", help="Page id to regenerate"),
    debounce: float | None = typer.Option(0.0, "--debounce", help=DEBOUNCE_HELP),
) -> None:
    """Evict and regenerate one page."""
    service = _build_service(debounce)
    try:
        page = service.store.get_page(page_id)
        if page is None:
            typer.echo(f"❌ Page not found: {page_id}", err=True)
            raise typer.Exit(1)
        target = service.scheduler.submit(page, evict_immediately=True)
    finally:
        service.shutdown(drain=True)

    if service.scheduler.failures:
        typer.echo(f"❌ Failed to regenerate {'/'.join(target.key)}", err=True)
        raise typer.Exit(1)
    written = sorted(str(p) for p in target.output_paths if p.exists())
    typer.echo(f"✅ {'/'.join(target.key)}: {len(written)} files")
    for path in written:
        typer.echo(f"   {path}")


@app.command()
def replay(
    events_file: str = typer.Argument(..., help="NDJSON change events, '-' for stdin"),
    debounce: float | None = typer.Option(None, "--debounce", help=DEBOUNCE_HELP),
) -> None:
    """Feed recorded change notifications through the router."""
    from pydantic import ValidationError

    from ..core.events import parse_event

    if events_file == "-":
        lines = sys.stdin.read().splitlines()
    else:
        path = Path(events_file)
        if not path.exists():
            typer.echo(f"❌ Events file not found: {path}", err=True)
            raise typer.Exit(1)
        lines = path.read_text(encoding="utf-8").splitlines()

    service = _build_service(debounce)
    dispatched = invalid = 0
    try:
        for lineno, line in enumerate(lines, 1):
            if not line.strip():
                continue
            try:
                event = parse_event(line)
            except (ValueError, ValidationError) as e:
                invalid += 1
                log.warning("cli.replay.invalid", line=lineno, error=str(e))
                continue
            service.dispatch(event)
            dispatched += 1
    finally:
        service.shutdown(drain=True)

    typer.echo(f"📨 Dispatched {dispatched} events ({invalid} invalid)")
    typer.echo(
        f"✅ Regenerated {service.scheduler.completed} pages "
        f"({service.scheduler.failures} failures)"
    )


if __name__ == "__main__":
    app()

"""Typer CLI for Supply Sentinel."""

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(name="sentinel", help="Supply Sentinel: supply-chain anomaly detection")
console = Console()

_SEVERITY_STYLE = {
    "CRITICAL": "bold red",
    "HIGH": "red",
    "MEDIUM": "yellow",
    "LOW": "dim",
}


@app.command()
def serve(
    host: str = typer.Option(None, help="Bind host (default: SENTINEL_HOST)"),
    port: int = typer.Option(None, help="Bind port (default: SENTINEL_PORT)"),
):
    """Start the Supply Sentinel API server."""
    import uvicorn
    from supply_sentinel.app import create_app
    from supply_sentinel.common.config import get_settings

    settings = get_settings()
    host = host or settings.host
    port = port or settings.port

    console.print(f"[bold green]Starting Supply Sentinel on {host}:{port}[/bold green]")
    uvicorn.run(create_app(), host=host, port=port)


@app.command()
def scan(
    scan_type: str = typer.Option(
        None, "--type", "-t",
        help="serialization, logistics, erp, compliance, maintenance (default: all)",
    ),
):
    """Run one detection pass against the configured database."""
    import asyncio

    from supply_sentinel.common.exceptions import SentinelError

    try:
        result = asyncio.run(_run_scan(scan_type))
    except SentinelError as e:
        console.print(f"[bold red]{e.code}[/bold red]: {e.message}")
        raise typer.Exit(1)

    table = Table(title=f"{result.detected} anomalies detected")
    table.add_column("Type")
    table.add_column("Severity")
    table.add_column("Auto-resolvable")
    for a in result.anomalies:
        style = _SEVERITY_STYLE.get(a["severity"], "")
        table.add_row(
            a["type"],
            f"[{style}]{a['severity']}[/{style}]" if style else a["severity"],
            "yes" if a["can_auto_resolve"] else "no",
        )
    console.print(table)
    if result.failed_domains:
        console.print(
            f"[yellow]Skipped failing domains:[/yellow] {', '.join(result.failed_domains)}"
        )


async def _run_scan(scan_type: str | None):
    from supply_sentinel.common.config import get_settings
    from supply_sentinel.common.logging import setup_logging
    from supply_sentinel.deps import get_anomaly_service, get_db, get_enricher

    setup_logging(get_settings().log_level)
    db = get_db()
    await db.init()
    await db.create_all()
    svc = get_anomaly_service()
    enricher = get_enricher()
    try:
        async with db.get_session() as session:
            result = await svc.scan(session, scan_type)
        # A one-shot process has to drain the queue before exiting.
        if svc.enqueue_enrichment(result):
            await enricher.join()
    finally:
        await enricher.stop()
        await db.close()
    return result


@app.command()
def health(
    url: str = typer.Option(None, help="Server URL (default: localhost on SENTINEL_PORT)"),
):
    """Check Supply Sentinel server health."""
    import httpx
    from supply_sentinel.common.config import get_settings

    url = url or f"http://localhost:{get_settings().port}"

    try:
        resp = httpx.get(f"{url}/health", timeout=5)
        data = resp.json()
        console.print(f"[bold green]{data['status']}[/bold green] v{data['version']}")
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()

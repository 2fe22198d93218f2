"""Entry point for the server status monitor."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

import uvicorn
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from server_monitor.config import settings
from server_monitor.monitor.network import ConnectivityMonitor, NetworkGate
from server_monitor.monitor.scheduler import CheckScheduler
from server_monitor.registry.registry import ServerRegistry
from server_monitor.registry.store import BlobStore

console = Console()
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)


def run_server() -> None:
    """Start the FastAPI server."""
    console.print(Panel("Starting Server Status Monitor", style="bold green"))
    uvicorn.run(
        "server_monitor.api.server:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
    )


async def _sweep_once(registry: ServerRegistry, store: BlobStore) -> None:
    gate = NetworkGate()
    probe = ConnectivityMonitor(
        host=settings.connectivity_probe_host,
        port=settings.connectivity_probe_port,
    )
    loop = asyncio.get_running_loop()
    gate.observe(await loop.run_in_executor(None, probe.current_path))

    scheduler = CheckScheduler(
        registry,
        store,
        gate,
        timeout=settings.check_timeout_seconds,
        match_expected=settings.match_expected_status,
    )
    try:
        await scheduler.check_all()
    finally:
        await scheduler.stop()


def run_check() -> None:
    """Check every saved server once and print the results."""
    store = BlobStore(settings.db_path)
    try:
        registry = ServerRegistry(store)
        registry.load()
        if not len(registry):
            console.print("[yellow]No servers registered.[/yellow]")
            return

        with console.status("[bold green]Checking servers..."):
            asyncio.run(_sweep_once(registry, store))

        table = Table(title="Server Status")
        table.add_column("Domain")
        table.add_column("Status")
        table.add_column("Code", justify="right")
        table.add_column("Last checked")
        for s in registry.snapshot():
            last = s.last_status_check
            color = {"Online": "green", "Offline": "red"}.get(s.status_text, "dim")
            table.add_row(
                s.domain,
                f"[{color}]{s.status_text}[/{color}]",
                str(last.status_code) if last else "-",
                s.last_checked.isoformat(timespec="seconds") if s.last_checked else "-",
            )
        console.print(table)
    finally:
        store.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Server Status Monitor")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("serve", help="Start the API server")
    sub.add_parser("check", help="Check all saved servers once")

    args = parser.parse_args()

    if args.command == "serve":
        run_server()
    elif args.command == "check":
        run_check()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()

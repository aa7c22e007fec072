"""
Automation CLI

Command-line entry point of the Ithaca testnet automation:
- Loads .env, settings, keys and proxies
- Runs wallet cycles forever, or a single cycle with --once
- Shows the inter-cycle countdown and a per-cycle summary table
- Stops cleanly on SIGINT/SIGTERM
"""

import asyncio
import signal
import sys
from typing import List, Optional

import click
import structlog
from rich.console import Console
from rich.progress import BarColumn, Progress, TextColumn
from rich.table import Table

from ..config.environment import DEFAULT_KEYS_FILE, DEFAULT_PROXIES_FILE, EnvironmentManager
from ..config.loader import load_config, load_private_keys
from ..core.proxy_pool import ProxyPool
from ..core.run_context import RunContext
from ..core.types import ConfigError, KeyFileError, ShutdownRequested
from ..services.automation_services import AutomationServices
from ..services.wallet_cycle_runner import WalletCycleRunner, WalletReport
from ..utils.logging_config import configure_logging
from ..utils.metrics import start_metrics_server

logger = structlog.get_logger(__name__)

# Initialize rich console
console = Console()


def format_countdown(seconds: float) -> str:
    """Format seconds as HH:MM:SS"""
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


async def countdown(ctx: RunContext, seconds: float) -> None:
    """Sleep ``seconds`` in one-second ticks, showing the time left"""
    remaining = int(seconds)
    with Progress(
        TextColumn("[blue]Next cycle in:[/blue] [yellow]{task.fields[left]}[/yellow]"),
        BarColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("cooldown", total=remaining, left=format_countdown(remaining))
        while remaining > 0:
            await ctx.sleep(1)
            remaining -= 1
            progress.update(task, advance=1, left=format_countdown(remaining))


def display_cycle_reports(cycle: int, reports: List[WalletReport]) -> None:
    """Display per-wallet operation results"""
    table = Table(title=f"Cycle {cycle}")
    table.add_column("Wallet", style="dim")
    table.add_column("Address", style="cyan")
    table.add_column("Operation", style="green")
    table.add_column("Status", style="magenta")
    table.add_column("Details", style="yellow")

    for report in reports:
        if report.error:
            table.add_row(str(report.index), "-", "-", "[red]invalid key[/red]", report.error)
            continue
        for name, result in report.results.items():
            status = result.status.value
            if not result.success:
                status = f"[red]{status}[/red]"
            table.add_row(str(report.index), report.address, name, status,
                          result.tx_hash or result.reason or "")

    console.print(table)


def install_signal_handlers(ctx: RunContext) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, ctx.request_stop)
        except NotImplementedError:
            # Windows event loops; Ctrl+C then raises KeyboardInterrupt instead
            logger.debug("Signal handlers not supported", signal=sig.name)


async def run_automation(
    config_path: Optional[str],
    keys_path: str,
    proxies_path: Optional[str],
    once: bool,
    env: EnvironmentManager,
) -> None:
    """Build the runner and drive it until stopped"""
    ctx = RunContext()
    install_signal_handlers(ctx)
    proxy_pool = ProxyPool.from_file(proxies_path) if proxies_path else ProxyPool()

    runner = WalletCycleRunner(
        ctx,
        services_factory=lambda config: AutomationServices(config, ctx, proxy_pool, env),
        keys_loader=lambda: load_private_keys(keys_path),
        config_loader=lambda: load_config(config_path),
        cooldown=lambda seconds: countdown(ctx, seconds),
        on_cycle_end=display_cycle_reports,
    )

    if once:
        await runner.run_cycle()
    else:
        await runner.run_forever()


@click.command(context_settings={'help_option_names': ['-h', '--help']})
@click.option('--config', 'config_path', envvar='AUTOMATION_CONFIG', default=None,
              help='Settings file (config.json / config.yaml searched if omitted)')
@click.option('--keys', 'keys_path', envvar='AUTOMATION_KEYS', default=DEFAULT_KEYS_FILE,
              show_default=True, help='Private key list, one per line')
@click.option('--proxies', 'proxies_path', envvar='AUTOMATION_PROXIES', default=DEFAULT_PROXIES_FILE,
              show_default=True, help='Optional proxy list, one per line')
@click.option('--once', is_flag=True, help='Run a single cycle and exit')
@click.option('--log-level', type=click.Choice(['debug', 'info', 'warning', 'error']),
              default='info', show_default=True)
@click.option('--json-logs', is_flag=True, help='Emit JSON log lines')
@click.option('--metrics-port', type=int, default=None, help='Expose Prometheus metrics on this port')
def cli(config_path, keys_path, proxies_path, once, log_level, json_logs, metrics_port):
    """Ithaca testnet wallet automation: self-transfers and Sepolia/Ithaca bridging"""
    configure_logging(log_level, json_logs)
    env = EnvironmentManager(load=False)
    start_metrics_server(metrics_port)

    console.print("[bold blue]Ithaca testnet automation[/bold blue]")
    try:
        asyncio.run(run_automation(config_path, keys_path, proxies_path, once, env))
    except (ShutdownRequested, KeyboardInterrupt):
        console.print("[yellow]Stopped.[/yellow]")
    except (ConfigError, KeyFileError) as e:
        console.print(f"[bold red]Error:[/bold red] {str(e)}")
        sys.exit(1)
    except Exception as e:
        logger.exception("Fatal error")
        console.print(f"[bold red]Error:[/bold red] {str(e)}")
        sys.exit(1)


def main():
    """Run the CLI"""
    # .env must be loaded before click resolves envvar defaults
    EnvironmentManager()
    cli()


if __name__ == "__main__":
    main()

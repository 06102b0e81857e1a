"""
Defines the command-line interface for the service using Typer.
"""

import asyncio
import logging
import os
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from release_proxy import __version__
from release_proxy.core.module_loader import ModuleRegistry, create_module_factory
from release_proxy.models.config import ServiceConfig
from release_proxy.storage.catalog_cache import DownloadsCatalogCache
from release_proxy.storage.config_manager import ConfigManager

from .formatters import print_catalog_table, print_config

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("release_proxy")

app = typer.Typer(
    name="release-proxy",
    help="Resolve and proxy the latest release downloads of known applications.",
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "release-proxy"


CONFIG_FILE = get_config_dir() / "config.ini"


def _config_manager(ctx: typer.Context) -> ConfigManager:
    return ConfigManager(ctx.obj or CONFIG_FILE)


def _catalog_cache(config: ServiceConfig) -> DownloadsCatalogCache:
    registry = ModuleRegistry(create_module_factory(config))
    return DownloadsCatalogCache(registry, ttl=config.cache_ttl)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    config_path: Path | None = typer.Option(  # noqa: B008
        None, "--config", "-c", help="Use this config file instead of the default."
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """Release download proxy"""
    if version:
        console.print(f"[bold]release-proxy[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("release_proxy").setLevel(log_level)

    ctx.obj = config_path

    if show_config:
        config_manager = _config_manager(ctx)
        config = config_manager.load_config()
        print_config(config_manager.config_file_path, config.model_dump())
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    ctx: typer.Context,
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing config without asking."
    ),
):
    """Write a default configuration file."""
    config_manager = _config_manager(ctx)
    if (
        config_manager.config_file_path.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    config_manager.save_new_config(
        {"store_path": str(config_manager.config_file_path.parent / "data")}
    )
    console.print(
        f"[bold green]✓ Configuration saved to '{config_manager.config_file_path}'"
        "[/bold green]"
    )
    console.print("Start the service with: [cyan]release-proxy serve[/cyan]")


@app.command()
def serve(
    ctx: typer.Context,
    host: str | None = typer.Option(None, "--host", help="Interface to bind."),
    port: int | None = typer.Option(None, "--port", "-p", help="Port to listen on."),
    store_backend: str | None = typer.Option(
        None, "--store-backend", help="Backing store: 'file' or 'memory'."
    ),
    store_path: str | None = typer.Option(
        None, "--store-path", help="Directory of the file backing store."
    ),
):
    """Run the downloads HTTP service."""
    from release_proxy.web import run

    config = _config_manager(ctx).load_config(
        {
            "host": host,
            "port": port,
            "store_backend": store_backend,
            "store_path": store_path,
        }
    )
    log.info(
        f"Serving downloads on [cyan]http://{config.host}:{config.port}"
        f"{config.api_prefix}/downloads[/cyan] ({config.store_backend} store)"
    )
    run(config)


@app.command()
def catalog(ctx: typer.Context):
    """Show the downloads catalog, refreshing it when stale."""
    config = _config_manager(ctx).load_config()
    print_catalog_table(asyncio.run(_catalog_cache(config).load()))


@app.command()
def refresh(ctx: typer.Context):
    """Force a refresh of the persisted downloads catalog."""
    config = _config_manager(ctx).load_config()
    result = asyncio.run(_catalog_cache(config).force_refresh())
    console.print(
        f"[green]✓ Downloads catalog refreshed ({len(result.entries)} applications, "
        f"timestamp {result.generated_at}).[/green]"
    )

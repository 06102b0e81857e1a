"""
Functions for formatting and displaying data in the console using Rich.
"""

from datetime import datetime
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from release_proxy.models.catalog import DownloadsCatalog


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigurationError": [
            "• Check the values in your configuration file.",
            "• Run `release-proxy init --force` to write a fresh default config.",
        ],
        "StorageError": [
            "• Verify that `store_path` points to a writable directory.",
            "• Check free disk space and permissions.",
        ],
        "InitializationError": [
            "• The backing store could not be opened.",
            "• Try `--store-backend memory` to run without persistence.",
        ],
        "OSError": [
            "• The port may already be in use. Try another with `--port`.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration, hiding sensitive data."""
    console = Console()
    content = ""
    for key, value in config_data.items():
        if key == "github_token" and value:
            value = "[hidden]"
        content += f"{key} = {value}\n"

    console.print(
        Panel(
            content.strip(),
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_catalog_table(catalog: DownloadsCatalog):
    """Displays one row per application and platform."""
    console = Console()
    generated = datetime.fromtimestamp(catalog.generated_at).strftime("%Y-%m-%d %H:%M:%S")

    table = Table(title=f"Downloads Catalog ([dim]generated {generated}[/dim])")
    table.add_column("Application", style="cyan")
    table.add_column("Platform", style="green")
    table.add_column("Repository")
    table.add_column("Asset Pattern", style="dim")

    for entry in catalog.entries:
        for platform, source in entry.platforms.items():
            table.add_row(entry.name, platform, source.repo, source.asset_pattern)

    console.print(table)

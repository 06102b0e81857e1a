"""
Main entry point for the release-proxy service.
This module handles top-level setup, exception handling, and CLI invocation.
"""

import logging
import sys

import typer
from rich.console import Console

from release_proxy.cli.app import app
from release_proxy.cli.formatters import format_error_with_suggestions
from release_proxy.exceptions import ReleaseProxyError


def main() -> None:
    """Main entry point function."""
    log = logging.getLogger("release_proxy")
    console = Console()

    try:
        app()
    except (typer.Exit, typer.Abort):
        pass
    except KeyboardInterrupt:
        console.print("\n[yellow]⚠️  Interrupted.[/yellow]")
        sys.exit(0)
    except ReleaseProxyError as e:
        console.print(f"\n{format_error_with_suggestions(e)}")
        sys.exit(1)
    except Exception as e:
        console.print(f"\n{format_error_with_suggestions(e, {'type': 'Unexpected'})}")
        log.debug("Full traceback:", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()

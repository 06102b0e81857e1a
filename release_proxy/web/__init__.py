"""
HTTP Layer.

This package exposes the downloads API as an aiohttp web application.
"""

from .app import create_app, run

__all__ = ["create_app", "run"]

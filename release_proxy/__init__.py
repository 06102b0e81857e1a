"""
release-proxy: resolves the newest release artifact for an application and
platform, and streams it back to the caller.
"""

__version__ = "1.0.0"

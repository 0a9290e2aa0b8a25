"""tracestore command-line interface."""

from tracestore.cli.app import app

__all__ = ["app"]

"""
CLI layer for autocommit.

Handles only terminal transport: argument parsing, coloured output and
table formatting. Rule logic lives in the repositories and the scheduler.

Entry point::

    autocommit --help
"""

from autocommit.cli.app import app

__all__ = ["app"]

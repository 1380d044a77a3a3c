"""
minidb CLI.

Command-line interface for a minidb store directory.

Usage:
    minidb --dir /tmp/minidb add C -o "Dennis Ritchie" -y 1972 -c static
    minidb get C
    minidb save
    minidb show --format json
    minidb status
    minidb demo --reset
"""

from minidb.cli.main import app

__all__ = ["app"]

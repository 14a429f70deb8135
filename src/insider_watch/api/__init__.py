"""
HTTP API for the insider trade watcher.
"""

from .server import create_app, run_server

__all__ = ["create_app", "run_server"]

"""
Command Line Interface Package

Click commands for syncing the local cache and reading the derived views.
"""

from .main import main

__all__ = ["main"]

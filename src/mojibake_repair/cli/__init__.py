"""Command-line interface module for Mojibake Repair.

This module provides the ``mojibake-convert`` tool, which repairs one file per
invocation with progress display, run reports and configuration files.
"""

from .main import main

__all__ = ["main"]

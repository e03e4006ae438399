"""
vcsync - Repository state synchronization for local git working copies.

This package keeps an in-memory model of a working copy (branches, commit
logs, ahead/behind counts, remote reachability and uncommitted changes) in
step with git, and exposes it through the Model Context Protocol (MCP).
"""

__version__ = "1.0.0"
__author__ = "vcsync Team"
__description__ = "Repository state synchronization engine for local git working copies"

from .server import main

__all__ = ["main"]

#!/usr/bin/env python3
"""
vcsync Repository State MCP Server

Keeps an in-memory model of a local git working copy in step with git and
serves it over the Model Context Protocol on stdio.
"""

from vcsync.server import main


if __name__ == "__main__":
    main()

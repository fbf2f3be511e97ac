#!/usr/bin/env python3
"""
Entry point for the sync tool CLI.

Run with: python -m sync_tool
"""

from .cli import main

if __name__ == '__main__':
    main()

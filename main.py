#!/usr/bin/env python3
"""Entry point for mdmake."""

from mdmake.__main__ import main

if __name__ == "__main__":
    main()

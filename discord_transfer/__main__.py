#!/usr/bin/env python3
"""
Main execution module for the Discord transfer tool
"""

from discord_transfer.cli.commands import main

if __name__ == "__main__":
    main()

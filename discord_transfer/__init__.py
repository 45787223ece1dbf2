#!/usr/bin/env python3
"""
Discord server transfer tool
"""

__version__ = "3.0.2"

#!/usr/bin/env python3
"""Convenience runner for the plot guard command line.

Usage:
    python run.py validate "9.0 38.7; 9.0 38.7001; 9.0001 38.7001"
    python run.py sync FORM_ID
"""
import logging
import sys

from plot_guard.main import main

if __name__ == "__main__":
    if not logging.getLogger().hasHandlers():
        logging.basicConfig(level=logging.INFO, format="[%(asctime)s] %(levelname)s %(name)s: %(message)s")
    sys.exit(main())

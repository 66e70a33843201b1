"""
Booking core entry point.

Runs the command-line demo against an in-memory calendar.

Usage:
    python main.py availability --service plumbing --date 2026-10-20
    python main.py classify "No heat and it's freezing"
    python main.py book --service hvac --date 2026-10-20 --time 10:00
"""

import sys

from booking_core.cli import main

if __name__ == "__main__":
    sys.exit(main())

"""
Entry point for running the Cascade CLI as a module.

Usage:
    python -m cascade.cli simulate
    python -m cascade.cli focus timetable.json
    python -m cascade.cli --help
"""
from .feed_cli import main

if __name__ == "__main__":
    main()

"""
Entry point for the cascade feed engine CLI.

Run with:
    python main.py simulate --subject Biology
    cascade simulate
"""
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from cascade.cli.feed_cli import main

if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Enrich every stored article that has reference material but no long version.

Calls are made one at a time with a fixed delay in between
(BLOGSMITH_ENRICHMENT_DELAY, default 1 second).

Usage:
    python scripts/enrich_articles.py [--limit N]
"""
import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from blogsmith.cli import main


if __name__ == "__main__":
    sys.exit(main(["enrich", *sys.argv[1:]]))

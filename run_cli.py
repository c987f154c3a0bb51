#!/usr/bin/env python3
"""
Quick start script for the wall centerline generator - CLI mode.

Usage: python run_cli.py INPUT.json [--output OUT.json] [--config config.yaml]
"""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

# Run CLI
if __name__ == "__main__":
    from src.wallgen.cli import main
    sys.exit(main())

#!/usr/bin/env python3
"""chip8-vm launcher for running from a source checkout.

Usage:
    python main.py roms/IBM_Logo.ch8
    python main.py roms/PONG --mode legacy --scale 10
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from chip8_vm.cli import main


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
Canvasgraph - Graph engine for visual AI canvases

Entry point for the board inspector.
"""

import sys

from canvasgraph.inspector import main


if __name__ == "__main__":
    sys.exit(main())

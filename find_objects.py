#!/usr/bin/env python3
"""
Wrapper script for the pure object locator.
Makes it easier to run without the -m flag.

Usage:
    python find_objects.py features scene.png object1.png object2.png
    python find_objects.py templates scene.png icon1.png --method 5 --threshold 0.8
"""

import sys
from locator.locator_cli import main

if __name__ == '__main__':
    sys.exit(main())

"""
Allow running the package as a module.

This module enables running the package with:
    python -m module_packager

It simply delegates to the main() function from module_packager.py.
"""

import sys

from .module_packager import main

if __name__ == "__main__":
    sys.exit(main())

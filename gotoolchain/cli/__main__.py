"""
Entry point for running the gotoolchain CLI as a module.

Usage: python -m gotoolchain.cli [command] [options]
"""

from .parser import main

if __name__ == "__main__":
    main()

"""
Entry point for running gotoolchain as a module.

Usage: python -m gotoolchain [command] [options]
"""

from gotoolchain.cli.parser import main

if __name__ == "__main__":
    main()

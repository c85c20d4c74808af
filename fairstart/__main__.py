"""
Entry point for running the fairstart package as a module.

Usage:
    python -m fairstart --help
    python -m fairstart --attempts 10
"""

from fairstart.cli import main

if __name__ == "__main__":
    main()

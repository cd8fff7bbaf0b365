"""
Main entry point for the aiorch CLI.

This module is executed when running `python -m aiorch` or via the `aiorch` executable.
"""

from .cli import app


def main():
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()

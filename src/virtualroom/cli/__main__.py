"""CLI entry point for virtualroom.cli module.

Enables execution via: python -m virtualroom.cli
"""

from virtualroom.cli.watch_jobs import main

if __name__ == "__main__":
    main()

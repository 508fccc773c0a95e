"""
Package entry point.

Allows running the application via:

    python -m lectureintel

This simply forwards execution to lectureintel.cli.main().
"""

from lectureintel.cli import main

if __name__ == "__main__":
    main()

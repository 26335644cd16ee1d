"""Main entry point for the FAERS single-drug extraction pipeline."""
import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())

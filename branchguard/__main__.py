"""Main entry point when executing branchguard as a package.

This allows running the package using python -m branchguard.
"""

from branchguard.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()

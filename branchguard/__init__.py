"""branchguard: bulk removal of required status checks from branch protection."""

__version__ = "1.0.0"

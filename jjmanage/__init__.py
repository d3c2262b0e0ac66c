"""jj-manage: manage a tree of jj repositories organized by forge/user/repo."""

__version__ = "0.1.0"

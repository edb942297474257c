"""bookpress: multi-document book publishing with an incremental execution cache."""

from bookpress.version import __version__

__all__ = ["__version__"]

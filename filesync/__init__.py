"""FileSync: metadata-based one-way directory synchronization."""

__version__ = "1.0.0"

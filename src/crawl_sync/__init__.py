"""Client-side crawl job synchronization."""

__version__ = "1.0.0"

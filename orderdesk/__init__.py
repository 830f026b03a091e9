"""Order management HTTP service with SQL storage, Redis caching, event publishing and search indexing."""

__version__ = "0.1.0"
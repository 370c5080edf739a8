"""pagewatch: per-page browser diagnostics collection."""

__version__ = "1.0.0"

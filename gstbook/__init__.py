"""GSTBook: multi-tenant GST accounting core."""

__version__ = "1.0.0"

"""Book catalog service: books grouped into categories behind a small REST API."""

__version__ = "1.0.0"

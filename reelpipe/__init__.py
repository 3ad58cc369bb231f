"""reelpipe: multi-tenant short-form video pipeline."""

__version__ = "0.4.0"

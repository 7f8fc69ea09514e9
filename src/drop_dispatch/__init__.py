"""Drop-folder job dispatcher."""

__version__ = "0.1.0"

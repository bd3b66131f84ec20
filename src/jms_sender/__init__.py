"""Send a single text message to a queue resolved through a naming service."""

__version__ = "1.0.0"

"""Weekly trend pack crawler."""

__version__ = "1.0.0"

"""mactl: bootstrap and configure a macOS developer machine."""

__version__ = "0.1.0"

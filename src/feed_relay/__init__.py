"""Feed relay: deliver new RSS/Atom items to Discord channels."""

__version__ = "0.1.0"

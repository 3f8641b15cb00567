"""Static HTML mirror of a Confluence page tree."""

__version__ = "0.1.0"

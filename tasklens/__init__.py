"""tasklens: natural-language task search and ranking."""

__version__ = "0.1.0"

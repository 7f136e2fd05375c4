"""Community library for Strudel live-coding patterns."""

__version__ = "0.1.0"

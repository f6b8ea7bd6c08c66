"""Client-side study question bank with contribution merging."""

__version__ = "1.0.0"

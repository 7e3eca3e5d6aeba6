"""Parsing Expression Grammar parsers with packrat caching, left recursion and precedence climbing."""

__version__ = "0.1.0"
"""Praxis - rule-based convention and quality analysis for source trees."""

__version__ = "0.1.0"

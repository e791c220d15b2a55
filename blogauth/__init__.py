"""Asymmetric-key challenge-response authentication for a blog's admin account."""

__version__ = "1.0.0"

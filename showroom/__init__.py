"""Showroom admin client: login lockout, session timeout and live click analytics."""

__version__ = "0.1.0"

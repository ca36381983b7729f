"""Portaria - package delivery tracking for condominium front desks."""

__version__ = "1.0.0"

"""Gerrit code review integration."""

from .client import ChangeNotFoundError, GerritClient, GerritError


__all__ = [
    "ChangeNotFoundError",
    "GerritClient",
    "GerritError",
]

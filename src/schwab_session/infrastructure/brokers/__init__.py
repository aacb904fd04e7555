"""Broker integrations"""

from .protocols import TokenProvider

__all__ = ["TokenProvider"]

"""Authenticated session management for the Schwab Trader API.

OAuth2 token lifecycle with retry-on-401 HTTP transports, and the streamer
WebSocket session that delivers account activity.
"""

__version__ = "0.1.0"

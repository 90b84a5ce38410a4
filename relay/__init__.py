"""
Relay package - Finnhub stream to webhook relay

Subscription registry, upstream connection manager, webhook forwarder
and the FastAPI control surface.
"""

__version__ = '1.0.0'

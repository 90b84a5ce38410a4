"""Relay service package exposing the core façade and API app."""
from .core import RelayService

__all__ = ["RelayService"]

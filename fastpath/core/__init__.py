"""Core components for fastpath."""

from .intent import IntentRouter, create_router

__all__ = ["IntentRouter", "create_router"]

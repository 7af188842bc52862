"""Storage backends for short-lived login state."""

from .callback_guard import (
    CallbackGuard,
    InMemoryCallbackGuard,
    RedisCallbackGuard,
    build_callback_guard,
)

__all__ = [
    "CallbackGuard",
    "InMemoryCallbackGuard",
    "RedisCallbackGuard",
    "build_callback_guard",
]

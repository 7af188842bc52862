"""Shared pytest fixtures and helpers for login tests."""

from .core import *  # noqa: F401,F403
from .providers import *  # noqa: F401,F403
from .services import *  # noqa: F401,F403

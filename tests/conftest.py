"""Test configuration and fixtures for flattr-auth."""

from tests.fixtures import *  # noqa: F401,F403

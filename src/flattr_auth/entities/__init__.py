"""Entities organized by business concept.

Each entity package holds its domain model (entity.py), its persistence
model (table.py) and its data access layer (repository.py).
"""

from .core.user_profile import UserProfile, UserProfileRepository, UserProfileTable

__all__ = ["UserProfile", "UserProfileTable", "UserProfileRepository"]

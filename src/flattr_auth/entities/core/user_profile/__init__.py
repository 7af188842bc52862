"""User profile entity module.

- UserProfile: domain entity
- UserProfileTable: database persistence model
- UserProfileRepository: data access layer, the only code that touches the table
"""

from .entity import UserProfile
from .repository import (
    ProfileConflictError,
    ProfileStoreError,
    UserProfileRepository,
    translate_store_errors,
)
from .table import UserProfileTable

__all__ = [
    "UserProfile",
    "UserProfileTable",
    "UserProfileRepository",
    "ProfileConflictError",
    "ProfileStoreError",
    "translate_store_errors",
]

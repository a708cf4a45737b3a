"""
Database Models for the visibility engine
"""

from .database import (
    Base,
    # Enums
    SubscriptionTier,
    LLMProvider,
    ScheduleFrequency,
    CheckSource,
    # Models
    User,
    Project,
    Competitor,
    Keyword,
    ProjectPreference,
    ScheduledQuery,
    VisibilityCheck,
)

__all__ = [
    "Base",
    # Enums
    "SubscriptionTier",
    "LLMProvider",
    "ScheduleFrequency",
    "CheckSource",
    # Models
    "User",
    "Project",
    "Competitor",
    "Keyword",
    "ProjectPreference",
    "ScheduledQuery",
    "VisibilityCheck",
]

"""LinkedIn integration."""

from .client import LinkedInIntegration
from .schemas import (
    LinkedInCompany,
    LinkedInConnection,
    LinkedInMessage,
    LinkedInPost,
    LinkedInPostStats,
    LinkedInProfile,
)

__all__ = [
    "LinkedInCompany",
    "LinkedInConnection",
    "LinkedInIntegration",
    "LinkedInMessage",
    "LinkedInPost",
    "LinkedInPostStats",
    "LinkedInProfile",
]

"""Wrike integration."""

from .client import WrikeIntegration
from .schemas import WrikeComment, WrikeContact, WrikeFolder, WrikeTask, WrikeTimelog

__all__ = [
    "WrikeComment",
    "WrikeContact",
    "WrikeFolder",
    "WrikeIntegration",
    "WrikeTask",
    "WrikeTimelog",
]

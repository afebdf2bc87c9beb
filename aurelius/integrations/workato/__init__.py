"""Workato integration."""

from .client import WorkatoIntegration
from .schemas import (
    WorkatoConnection,
    WorkatoFolder,
    WorkatoJob,
    WorkatoRecipe,
    WorkatoUser,
)

__all__ = [
    "WorkatoConnection",
    "WorkatoFolder",
    "WorkatoIntegration",
    "WorkatoJob",
    "WorkatoRecipe",
    "WorkatoUser",
]

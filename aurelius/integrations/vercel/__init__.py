"""Vercel integration."""

from .client import VercelIntegration
from .schemas import (
    VercelDeployment,
    VercelDomain,
    VercelEnvVar,
    VercelProject,
    VercelUser,
)

__all__ = [
    "VercelDeployment",
    "VercelDomain",
    "VercelEnvVar",
    "VercelIntegration",
    "VercelProject",
    "VercelUser",
]

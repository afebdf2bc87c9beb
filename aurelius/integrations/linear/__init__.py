"""Linear integration."""

from .client import LinearIntegration
from .schemas import (
    LinearComment,
    LinearCycle,
    LinearIssue,
    LinearLabel,
    LinearNotification,
    LinearProject,
    LinearTeam,
    LinearUser,
    LinearWorkflowState,
)

__all__ = [
    "LinearComment",
    "LinearCycle",
    "LinearIntegration",
    "LinearIssue",
    "LinearLabel",
    "LinearNotification",
    "LinearProject",
    "LinearTeam",
    "LinearUser",
    "LinearWorkflowState",
]

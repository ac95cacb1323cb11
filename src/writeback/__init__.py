"""writeback -- validated, policy-gated write actions against configured databases."""

from writeback.errors import (
    ActionError,
    FeatureDisabled,
    HandlerFailure,
    NotFound,
    Unauthorized,
    UnknownAction,
    UnsupportedConnector,
    ValidationFailure,
)
from writeback.executor import ActionExecutor
from writeback.models import ActionName, Resource
from writeback.registry import ActionRegistry

__all__ = [
    "ActionError",
    "ActionExecutor",
    "ActionName",
    "ActionRegistry",
    "FeatureDisabled",
    "HandlerFailure",
    "NotFound",
    "Resource",
    "Unauthorized",
    "UnknownAction",
    "UnsupportedConnector",
    "ValidationFailure",
]

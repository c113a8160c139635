"""
Core module initialization.
Exports configuration, logging utilities and the error taxonomy.
"""

from tableside.core.config import (
    EnvironmentMode,
    Settings,
    get_settings,
    setup_logging,
)
from tableside.core.exceptions import (
    DeletionNotAllowedError,
    EmptyCartError,
    IllegalTransitionError,
    InvalidCartItemError,
    MissingTargetError,
    NetworkError,
    NoValidItemsError,
    OrderingError,
    OrderValidationError,
    ServerRejectedError,
    UnknownStatusError,
)

__all__ = [
    "get_settings",
    "Settings",
    "EnvironmentMode",
    "setup_logging",
    "OrderingError",
    "OrderValidationError",
    "EmptyCartError",
    "MissingTargetError",
    "InvalidCartItemError",
    "NoValidItemsError",
    "IllegalTransitionError",
    "DeletionNotAllowedError",
    "NetworkError",
    "ServerRejectedError",
    "UnknownStatusError",
]

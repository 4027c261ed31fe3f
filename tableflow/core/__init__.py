"""
Core module initialization.
Exports configuration, logging utilities and the error taxonomy.
"""

from tableflow.core.config import get_settings, get_logger, setup_logging, Settings, EnvironmentMode
from tableflow.core.exceptions import (
    TableflowError,
    ValidationError,
    NotFoundError,
    InvalidTransitionError,
    InsufficientPaymentError,
    EmptyBillError,
    StaleBillError,
)

__all__ = [
    "get_settings",
    "setup_logging",
    "get_logger",
    "Settings",
    "EnvironmentMode",
    "TableflowError",
    "ValidationError",
    "NotFoundError",
    "InvalidTransitionError",
    "InsufficientPaymentError",
    "EmptyBillError",
    "StaleBillError",
]

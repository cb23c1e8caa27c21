"""
Services.

Business logic layer.
"""

# Base Service Infrastructure
from app.services.base_service import (
    BaseService,
    log_operation,
    transaction,
)

__all__ = [
    "BaseService",
    "log_operation",
    "transaction",
]

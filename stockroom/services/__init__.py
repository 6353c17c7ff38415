"""Stockroom services: the ledger, both workflows, batching and the audit trail."""

from .batch_processor import BatchProcessor, BatchResult
from .errors import (
    EntityNotFoundError,
    InsufficientStockError,
    InvalidTransitionError,
    LineValidationError,
    MissingVariantError,
    Shortfall,
    StockroomError,
    UnknownActionError,
)
from .issuance_workflow import perform_issuance_action, perform_issuance_edit
from .restock_workflow import perform_restock_action
from .results import TransitionResult

__all__ = [
    'BatchProcessor',
    'BatchResult',
    'EntityNotFoundError',
    'InsufficientStockError',
    'InvalidTransitionError',
    'LineValidationError',
    'MissingVariantError',
    'Shortfall',
    'StockroomError',
    'UnknownActionError',
    'perform_issuance_action',
    'perform_issuance_edit',
    'perform_restock_action',
    'TransitionResult',
]

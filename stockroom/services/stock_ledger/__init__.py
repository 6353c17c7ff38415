"""
Stock Ledger - Canonical Entry Point

Quantity on hand per (item, size). All stock movements go through ``adjust``
(or ``adjust_many``); reads for validation go through ``resolve_batch`` or a
``LedgerSnapshot``.
"""

from ._core import (
    FAIL,
    SKIP,
    Pair,
    adjust,
    adjust_many,
    ensure_variant,
    item_names,
    missing_variant_policy,
    normalize_pair,
    quantity,
    resolve_batch,
)
from ._options import invalidate_stock_options, stock_options
from ._snapshot import LedgerSnapshot, aggregate_needs

__all__ = [
    'FAIL',
    'SKIP',
    'Pair',
    'adjust',
    'adjust_many',
    'ensure_variant',
    'item_names',
    'missing_variant_policy',
    'normalize_pair',
    'quantity',
    'resolve_batch',
    'invalidate_stock_options',
    'stock_options',
    'LedgerSnapshot',
    'aggregate_needs',
]

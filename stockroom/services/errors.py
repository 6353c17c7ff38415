"""
Typed failures raised by the ledger and the workflows.

Every error carries ``messages``: plain strings fit for direct display, one per
affected line where that applies.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from ..utils.error_messages import ErrorMessages as EM


class StockroomError(Exception):
    """Base class for recoverable workflow failures."""

    error_type = 'error'

    def __init__(self, messages: str | Sequence[str]):
        if isinstance(messages, str):
            messages = [messages]
        self.messages = list(messages)
        super().__init__('; '.join(self.messages))


@dataclass(frozen=True)
class Shortfall:
    item_id: int
    item_name: str
    size: str
    needed: int
    available: int

    @property
    def message(self) -> str:
        return EM.STOCK_SHORTFALL.format(
            item=self.item_name, size=self.size, needed=self.needed, available=self.available
        )


class InsufficientStockError(StockroomError):
    """A deduction would drive one or more ledger rows below zero."""

    error_type = 'insufficient_stock'

    def __init__(self, shortfalls: Iterable[Shortfall]):
        self.shortfalls = list(shortfalls)
        super().__init__([s.message for s in self.shortfalls])


class InvalidTransitionError(StockroomError):
    error_type = 'invalid_transition'

    def __init__(self, current: str, requested: str):
        self.current = str(getattr(current, 'value', current))
        self.requested = str(getattr(requested, 'value', requested))
        super().__init__(EM.TRANSITION_INVALID.format(current=self.current, requested=self.requested))


class MissingVariantError(StockroomError):
    """Ledger row absent for a referenced (item, size) under the ``fail`` policy."""

    error_type = 'missing_variant'

    def __init__(self, item_id: int, size: str, item_name: str | None = None):
        self.item_id = item_id
        self.size = size
        super().__init__(EM.STOCK_VARIANT_MISSING.format(item=item_name or f"Item #{item_id}", size=size))


class LineValidationError(StockroomError):
    error_type = 'validation'


class EntityNotFoundError(StockroomError):
    error_type = 'not_found'

    def __init__(self, entity_type: str, entity_id):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(EM.ENTITY_NOT_FOUND.format(entity=entity_type.capitalize(), entity_id=entity_id))


class UnknownActionError(StockroomError):
    error_type = 'validation'

    def __init__(self, action: str):
        self.action = action
        super().__init__(EM.TRANSITION_UNKNOWN_ACTION.format(action=action))

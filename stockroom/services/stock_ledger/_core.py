"""
Canonical stock ledger operations.

Every change to StockVariant.quantity goes through ``adjust``; nothing else
in the package writes that column. Debits use a conditional UPDATE so the
non-negativity check and the write happen in one statement at row level.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, Mapping, Optional, Tuple

from flask import current_app, has_app_context
from sqlalchemy import select, update

from ...extensions import db
from ...models import Item, StockVariant
from ...utils.error_messages import ErrorMessages as EM
from ...utils.timezone_utils import TimezoneUtils
from ..errors import InsufficientStockError, LineValidationError, MissingVariantError, Shortfall
from ._options import invalidate_stock_options

logger = logging.getLogger(__name__)

Pair = Tuple[int, str]

SKIP = 'skip'
FAIL = 'fail'


def normalize_pair(item_id, size) -> Pair:
    return (int(item_id), str(size).strip())


def missing_variant_policy(explicit: Optional[str] = None) -> str:
    if explicit:
        return explicit
    if has_app_context():
        return current_app.config.get('MISSING_VARIANT_POLICY', SKIP)
    return SKIP


def quantity(item_id: int, size: str) -> int:
    """Current stock for one (item, size); a missing row reads as 0."""
    item_id, size = normalize_pair(item_id, size)
    current = db.session.execute(
        select(StockVariant.quantity).where(
            StockVariant.item_id == item_id,
            StockVariant.size_label == size,
        )
    ).scalar_one_or_none()
    return int(current or 0)


def resolve_batch(pairs: Iterable[Pair], *, lock: bool = False) -> Dict[Pair, int]:
    """Stock for many (item, size) pairs in one query.

    With ``lock`` the rows are read FOR UPDATE so the levels hold until the
    surrounding transaction ends (ignored by SQLite).
    """
    wanted = {normalize_pair(item_id, size) for item_id, size in pairs}
    if not wanted:
        return {}

    levels = {pair: 0 for pair in wanted}
    stmt = (
        select(StockVariant.item_id, StockVariant.size_label, StockVariant.quantity)
        .where(StockVariant.item_id.in_(sorted({item_id for item_id, _ in wanted})))
        .order_by(StockVariant.item_id, StockVariant.size_label)
    )
    if lock:
        stmt = stmt.with_for_update()

    for item_id, size_label, qty in db.session.execute(stmt):
        pair = (item_id, size_label)
        if pair in levels:
            levels[pair] = int(qty or 0)
    return levels


def item_names(item_ids: Iterable[int]) -> Dict[int, str]:
    ids = sorted({int(i) for i in item_ids})
    if not ids:
        return {}
    rows = db.session.execute(select(Item.id, Item.name).where(Item.id.in_(ids)))
    names = {item_id: name for item_id, name in rows}
    return {item_id: names.get(item_id, f"Item #{item_id}") for item_id in ids}


def adjust(item_id: int, size: str, delta: int, *, policy: Optional[str] = None) -> int:
    """Apply ``delta`` to one ledger row and return the delta actually applied.

    Raises InsufficientStockError (row untouched) when a debit would go below
    zero. A missing row is skipped (returns 0) or raises MissingVariantError
    depending on the policy.
    """
    item_id, size = normalize_pair(item_id, size)
    delta = int(delta)
    if delta == 0:
        return 0

    stmt = update(StockVariant).where(
        StockVariant.item_id == item_id,
        StockVariant.size_label == size,
    )
    if delta < 0:
        stmt = stmt.where(StockVariant.quantity + delta >= 0)
    stmt = stmt.values(
        quantity=StockVariant.quantity + delta,
        updated_at=TimezoneUtils.utc_now(),
    ).execution_options(synchronize_session=False)

    result = db.session.execute(stmt)
    if result.rowcount:
        _expire_loaded_variant(item_id, size)
        invalidate_stock_options(item_id)
        logger.info(f"LEDGER ADJUST: item_id={item_id}, size={size}, delta={delta:+d}")
        return delta

    current = db.session.execute(
        select(StockVariant.quantity).where(
            StockVariant.item_id == item_id,
            StockVariant.size_label == size,
        )
    ).scalar_one_or_none()

    if current is None:
        name = item_names([item_id]).get(item_id)
        if missing_variant_policy(policy) == FAIL:
            logger.warning(f"Ledger row missing for item_id={item_id}, size={size}; failing adjustment")
            raise MissingVariantError(item_id, size, name)
        logger.warning(f"Ledger row missing for item_id={item_id}, size={size}; skipping delta {delta:+d}")
        return 0

    name = item_names([item_id]).get(item_id)
    logger.warning(f"Rejected debit of {-delta} for item_id={item_id}, size={size}: only {current} on hand")
    raise InsufficientStockError([
        Shortfall(item_id=item_id, item_name=name, size=size, needed=-delta, available=int(current))
    ])


def adjust_many(deltas: Mapping[Pair, int], *, policy: Optional[str] = None) -> Dict[Pair, int]:
    """Apply several deltas in (item_id, size) order; returns what was applied.

    The caller owns the transaction: on error nothing here is committed and
    the caller is expected to roll back.
    """
    applied: Dict[Pair, int] = {}
    for pair in sorted(deltas):
        delta = deltas[pair]
        if not delta:
            continue
        moved = adjust(pair[0], pair[1], delta, policy=policy)
        if moved:
            applied[pair] = applied.get(pair, 0) + moved
    return applied


def ensure_variant(item_id: int, size: str, quantity: int = 0) -> StockVariant:
    """Create the ledger row for (item, size). Opening stock is not a movement."""
    if size is None or not str(size).strip():
        raise LineValidationError(EM.FIELD_REQUIRED.format(field='Size'))
    if quantity is None or int(quantity) < 0:
        raise LineValidationError(EM.STOCK_QUANTITY_NEGATIVE)
    item_id, size = normalize_pair(item_id, size)

    existing = StockVariant.query.filter_by(item_id=item_id, size_label=size).first()
    if existing is not None:
        name = item_names([item_id]).get(item_id)
        raise LineValidationError(EM.STOCK_VARIANT_EXISTS.format(item=name, size=size))

    variant = StockVariant(item_id=item_id, size_label=size, quantity=int(quantity))
    db.session.add(variant)
    db.session.flush()
    invalidate_stock_options(item_id)
    return variant


def _expire_loaded_variant(item_id: int, size: str) -> None:
    for obj in list(db.session.identity_map.values()):
        if isinstance(obj, StockVariant) and obj.item_id == item_id and obj.size_label == size:
            db.session.expire(obj, ['quantity', 'updated_at'])

"""
Cached size pickers for the presentation layer.

These lists may be stale and are never used to validate a transition; the
ledger invalidates an item's entry whenever it adjusts one of its rows.
"""
from __future__ import annotations

from typing import Any, Dict, List

from flask import current_app, has_app_context

from ...extensions import cache

_OPTIONS_KEY = "stock_options:v1:{item_id}"


def stock_options_cache_key(item_id: int) -> str:
    return _OPTIONS_KEY.format(item_id=int(item_id))


def invalidate_stock_options(*item_ids: int) -> None:
    if not has_app_context():
        return
    for item_id in item_ids:
        cache.delete(stock_options_cache_key(item_id))


def stock_options(item_id: int) -> List[Dict[str, Any]]:
    """Sizes for one item with on-hand quantities, e.g. for a line picker."""
    from ...models import StockVariant

    key = stock_options_cache_key(item_id)
    cached = cache.get(key)
    if cached is not None:
        return cached

    variants = (
        StockVariant.query.filter_by(item_id=int(item_id))
        .order_by(StockVariant.size_label)
        .all()
    )
    options = [
        {
            "size": v.size_label,
            "quantity": v.quantity,
            "label": f"{v.size_label} ({v.quantity} in stock)",
        }
        for v in variants
    ]
    cache.set(key, options, timeout=current_app.config.get("STOCK_OPTIONS_CACHE_TTL", 300))
    return options

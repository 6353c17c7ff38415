"""
Line input handling shared by both workflows.

Raw line payloads come from forms or JSON, so ids and quantities may arrive
as strings. Everything is normalised and validated before any row is written.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy import select

from ..extensions import db
from ..models import Item
from ..utils.error_messages import ErrorMessages as EM
from .errors import LineValidationError


def normalize_lines(raw_lines: Optional[Iterable[Mapping[str, Any]]]) -> List[Dict[str, Any]]:
    """Validate a full line set; every problem is reported at once."""
    raw_lines = list(raw_lines or [])
    if not raw_lines:
        raise LineValidationError(EM.LINES_REQUIRED)

    errors: List[str] = []
    lines: List[Dict[str, Any]] = []
    for index, raw in enumerate(raw_lines, start=1):
        item_id = _safe_int(raw.get('item_id'))
        size = _clean_string(raw.get('size'))
        quantity = _safe_int(raw.get('quantity'))

        if item_id is None:
            errors.append(EM.LINE_ITEM_REQUIRED.format(index=index))
        if not size:
            errors.append(EM.LINE_SIZE_REQUIRED.format(index=index))
        if quantity is None or quantity < 1:
            errors.append(EM.LINE_QUANTITY_INVALID.format(index=index))
        lines.append({'index': index, 'item_id': item_id, 'size': size, 'quantity': quantity})

    known = _existing_item_ids(line['item_id'] for line in lines if line['item_id'] is not None)
    for line in lines:
        if line['item_id'] is not None and line['item_id'] not in known:
            errors.append(EM.LINE_ITEM_UNKNOWN.format(index=line['index'], item_id=line['item_id']))

    if errors:
        raise LineValidationError(errors)
    for line in lines:
        line.pop('index')
    return lines


def normalize_overrides(raw: Optional[Mapping[Any, Any]], line_ids: Iterable[int]) -> Optional[Dict[int, int]]:
    """Per-line quantity overrides keyed by line id; None means "use defaults"."""
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        raise LineValidationError(EM.OVERRIDES_INVALID)

    valid_ids = set(line_ids)
    errors: List[str] = []
    overrides: Dict[int, int] = {}
    for key, value in raw.items():
        line_id = _safe_int(key)
        qty = _safe_int(value)
        if line_id is None or line_id not in valid_ids:
            errors.append(EM.LINE_OVERRIDE_UNKNOWN.format(line_id=key))
            continue
        if qty is None or qty < 0:
            errors.append(EM.LINE_OVERRIDE_NEGATIVE.format(line_id=line_id))
            continue
        overrides[line_id] = qty

    if errors:
        raise LineValidationError(errors)
    return overrides


def _existing_item_ids(item_ids: Iterable[int]) -> set:
    ids = set(item_ids)
    if not ids:
        return set()
    return set(db.session.execute(select(Item.id).where(Item.id.in_(ids))).scalars())


def _clean_string(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _safe_int(value: Any) -> Optional[int]:
    if value in (None, "", "null") or isinstance(value, bool):
        return None
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None

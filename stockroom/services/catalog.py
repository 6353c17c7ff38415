"""Minimal catalog maintenance: categories, items, sites and ledger rows."""

import logging

from ..extensions import db
from ..models import Category, Item, Site, StockVariant
from ..utils.error_messages import ErrorMessages as EM
from . import stock_ledger
from ._lines import _clean_string, _safe_int
from ._unit_of_work import unit_of_work
from .errors import LineValidationError

logger = logging.getLogger(__name__)


def create_category(name, description=None):
    with unit_of_work("Create category"):
        category = Category(name=_required(name, 'Name'), description=_clean_string(description))
        db.session.add(category)
    return category


def create_item(name, category_id=None, description=None, sizes=None):
    """Create an item, optionally with opening stock per size ({size: qty})."""
    with unit_of_work("Create item"):
        if category_id not in (None, ''):
            category_id = _safe_int(category_id)
            if category_id is None or db.session.get(Category, category_id) is None:
                raise LineValidationError(EM.CATEGORY_UNKNOWN.format(category_id=category_id))
        else:
            category_id = None

        item = Item(name=_required(name, 'Name'), category_id=category_id, description=_clean_string(description))
        db.session.add(item)
        db.session.flush()
        for size, quantity in (sizes or {}).items():
            stock_ledger.ensure_variant(item.id, size, _safe_int(quantity) or 0)

    logger.info(f"CATALOG: item {item.id} '{item.name}' created with {len(sizes or {})} sizes")
    return item


def create_site(name, location=None):
    with unit_of_work("Create site"):
        site = Site(name=_required(name, 'Name'), location=_clean_string(location))
        db.session.add(site)
    return site


def create_variant(item_id, size, quantity=0):
    with unit_of_work("Create stock variant"):
        parsed = _safe_int(item_id)
        if parsed is None or db.session.get(Item, parsed) is None:
            raise LineValidationError(EM.LINE_ITEM_UNKNOWN.format(index=1, item_id=item_id))
        qty = _safe_int(quantity)
        if qty is None:
            raise LineValidationError(EM.STOCK_QUANTITY_NEGATIVE)
        variant = stock_ledger.ensure_variant(parsed, _required(size, 'Size'), qty)
    return variant


def list_variants(item_id=None):
    query = StockVariant.query.join(Item)
    if item_id is not None:
        query = query.filter(StockVariant.item_id == item_id)
    return query.order_by(Item.name, StockVariant.size_label).all()


def variant_to_dict(variant):
    return {
        'id': variant.id,
        'item_id': variant.item_id,
        'item_name': variant.item.name if variant.item else None,
        'size': variant.size_label,
        'quantity': variant.quantity,
    }


def _required(value, label):
    cleaned = _clean_string(value)
    if not cleaned:
        raise LineValidationError(EM.FIELD_REQUIRED.format(field=label))
    return cleaned

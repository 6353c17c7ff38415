"""
Restock Workflow

Inbound stock from suppliers. Deliveries may arrive in several parts; each
line tracks its cumulative ``delivered_quantity`` and the ``remaining_quantity``
still outstanding, and the two always add up to the ordered quantity once a
delivery has started. Returns send delivered units back and leave the
delivery bookkeeping as it was.
"""

import logging
from collections import defaultdict
from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional

from sqlalchemy import func

from ..extensions import db
from ..models import RESTOCK_TRANSITIONS, Restock, RestockLine, RestockStatus
from ..utils.error_messages import ErrorMessages as EM
from . import audit_log
from . import stock_ledger
from ._lines import _clean_string, normalize_lines, normalize_overrides
from ._unit_of_work import lock_entity, unit_of_work
from .errors import InvalidTransitionError, LineValidationError, StockroomError, UnknownActionError
from .performer import resolve_performer
from .results import TransitionResult

logger = logging.getLogger(__name__)

CREATABLE_STATUSES = (RestockStatus.PENDING, RestockStatus.DELIVERED, RestockStatus.CANCELLED)
EDITABLE_FIELDS = ('supplier_name', 'ordered_by', 'ordered_at', 'note')
REQUIRED_FIELDS = {'supplier_name': 'Supplier name', 'ordered_by': 'Ordered by'}


# ==================== CREATE / EDIT ====================

def create_restock(supplier_name, ordered_by, lines, ordered_at=None, status=RestockStatus.PENDING, note=None,
                   performed_by=None):
    """Create a restock with its lines; ``delivered`` credits every line in full."""
    target = _coerce_status(status, EM.INITIAL_STATUS_INVALID)
    if target not in CREATABLE_STATUSES:
        raise LineValidationError(EM.INITIAL_STATUS_INVALID.format(status=target.value))

    performer = resolve_performer(performed_by)
    with unit_of_work("Create restock"):
        normalized = normalize_lines(lines)
        header = _clean_header({'supplier_name': supplier_name, 'ordered_by': ordered_by})

        restock = Restock(status=RestockStatus.PENDING.value, note=_clean_string(note), **header)
        restock.lines = [RestockLine(**line) for line in normalized]
        restock.stamp_status_date(RestockStatus.PENDING, when=_parse_date(ordered_at))
        db.session.add(restock)
        db.session.flush()

        note_payload = {'lines': _line_payload(restock.lines, 'quantity')}
        if target is RestockStatus.DELIVERED:
            _credit_deliveries(restock, None)
        elif target is RestockStatus.CANCELLED:
            restock.status = target.value
            restock.stamp_status_date(target)

        audit_log.record_transition(restock, audit_log.CREATED, performer, {**note_payload, 'status': restock.status})

    logger.info(f"RESTOCK {restock.id}: created as {restock.status} by {performer} ({len(restock.lines)} lines)")
    return restock


def update_restock(restock_ref, fields: Optional[Mapping[str, Any]] = None, lines=None, performed_by=None):
    """Header edits at any time; lines replaced wholesale only while pending."""
    performer = resolve_performer(performed_by)
    with unit_of_work("Update restock"):
        restock = lock_entity(Restock, restock_ref, 'restock')

        updates = {name: value for name, value in (fields or {}).items() if name in EDITABLE_FIELDS}
        ordered_at = updates.pop('ordered_at', None)
        for name, value in _clean_header(updates, partial=True).items():
            setattr(restock, name, value)
        if ordered_at is not None:
            restock.ordered_at = _parse_date(ordered_at)

        if lines is not None:
            if restock.status_enum is not RestockStatus.PENDING:
                raise LineValidationError(EM.LINES_LOCKED)
            normalized = normalize_lines(lines)
            restock.lines.clear()
            db.session.flush()
            restock.lines.extend(RestockLine(**line) for line in normalized)
            db.session.flush()

    logger.info(f"RESTOCK {restock.id}: updated by {performer}")
    return restock


# ==================== TRANSITIONS ====================

def deliver(restock_ref, quantities=None, performed_by=None, snapshot=None):
    """Receive stock for some or all lines.

    ``quantities`` maps line id to units received now; lines left out receive
    everything still outstanding. Amounts above what is outstanding are
    capped. Ends delivered when nothing is outstanding, partial otherwise.
    """
    performer = resolve_performer(performed_by)
    with unit_of_work("Deliver restock"):
        restock = lock_entity(Restock, restock_ref, 'restock')
        current = restock.status_enum
        if RestockStatus.PARTIAL not in RESTOCK_TRANSITIONS[current]:
            raise InvalidTransitionError(current, RestockStatus.DELIVERED)

        overrides = normalize_overrides(quantities, [line.id for line in restock.lines])
        received, applied = _credit_deliveries(restock, overrides)
        target = restock.status_enum
        audit_log.record_transition(restock, target, performer, {'lines': received})

    if snapshot is not None:
        snapshot.apply(applied)
    logger.info(f"RESTOCK {restock.id}: {current.value} -> {target.value} by {performer}")
    return restock


def return_restock(restock_ref, quantities=None, performed_by=None, snapshot=None):
    """Send delivered stock back to the supplier.

    Each line can return at most what it delivered (its ordered quantity when
    no delivery was recorded). The whole return is refused if the ledger no
    longer holds enough.
    """
    performer = resolve_performer(performed_by)
    with unit_of_work("Return restock"):
        restock = lock_entity(Restock, restock_ref, 'restock')
        current = restock.status_enum
        _require_edge(current, RestockStatus.RETURNED)

        overrides = normalize_overrides(quantities, [line.id for line in restock.lines])
        debits = defaultdict(int)
        returned = []
        for line in restock.lines:
            maximum = line.returnable_quantity
            requested = maximum if overrides is None else overrides.get(line.id, maximum)
            amount = min(requested, maximum)
            if amount:
                debits[stock_ledger.normalize_pair(line.item_id, line.size)] += amount
            returned.append({'line_id': line.id, 'item_id': line.item_id, 'size': line.size, 'quantity': amount})

        needs = dict(debits)
        _snapshot_for(needs, snapshot).require(needs)
        applied = stock_ledger.adjust_many({pair: -qty for pair, qty in needs.items()})

        restock.status = RestockStatus.RETURNED.value
        restock.stamp_status_date(RestockStatus.RETURNED)
        audit_log.record_transition(restock, RestockStatus.RETURNED, performer, {'lines': returned})

    if snapshot is not None:
        snapshot.apply(applied)
    logger.info(f"RESTOCK {restock.id}: {current.value} -> returned by {performer}")
    return restock


def cancel(restock_ref, performed_by=None, snapshot=None):
    performer = resolve_performer(performed_by)
    with unit_of_work("Cancel restock"):
        restock = lock_entity(Restock, restock_ref, 'restock')
        _require_edge(restock.status_enum, RestockStatus.CANCELLED)
        restock.status = RestockStatus.CANCELLED.value
        restock.stamp_status_date(RestockStatus.CANCELLED)
        audit_log.record_transition(restock, RestockStatus.CANCELLED, performer)

    logger.info(f"RESTOCK {restock.id}: pending -> cancelled by {performer}")
    return restock


ACTIONS = {
    'deliver': (deliver, EM.RESTOCK_DELIVERED),
    'return': (return_restock, EM.RESTOCK_RETURNED),
    'cancel': (cancel, EM.RESTOCK_CANCELLED),
}

ACTION_SOURCE_STATUSES = {
    'deliver': frozenset({RestockStatus.PENDING, RestockStatus.PARTIAL}),
    'return': frozenset({RestockStatus.DELIVERED, RestockStatus.PARTIAL}),
    'cancel': frozenset({RestockStatus.PENDING}),
}


def run_action(restock_ref, action, quantities=None, performed_by=None, snapshot=None):
    if action not in ACTIONS:
        raise UnknownActionError(action)
    handler, _ = ACTIONS[action]
    if action == 'cancel':
        return handler(restock_ref, performed_by=performed_by, snapshot=snapshot)
    return handler(restock_ref, quantities=quantities, performed_by=performed_by, snapshot=snapshot)


def perform_restock_action(restock_id, action, quantities=None, performed_by=None):
    """Run one transition and report the outcome instead of raising."""
    try:
        restock = run_action(restock_id, action, quantities, performed_by)
    except StockroomError as e:
        return TransitionResult.from_error(e, entity_id=restock_id)

    message = ACTIONS[action][1]
    if action == 'deliver' and restock.status_enum is RestockStatus.PARTIAL:
        message = EM.RESTOCK_PARTIAL
    return TransitionResult.ok(restock, message)


# ==================== QUERIES ====================

def restock_status_counts() -> Dict[str, int]:
    rows = db.session.query(Restock.status, func.count(Restock.id)).group_by(Restock.status).all()
    counts = {status.value: 0 for status in RestockStatus}
    for status, count in rows:
        counts[status] = count
    counts['all'] = sum(count for _, count in rows)
    return counts


def list_restocks(status=None):
    query = Restock.query
    if status:
        query = query.filter(Restock.status == _coerce_status(status).value)
    return query.order_by(Restock.id.desc()).all()


def restock_to_dict(restock) -> Dict[str, Any]:
    return {
        'id': restock.id,
        'supplier_name': restock.supplier_name,
        'ordered_by': restock.ordered_by,
        'ordered_at': restock.ordered_at.isoformat() if restock.ordered_at else None,
        'status': restock.status,
        'status_date': restock.status_date.isoformat() if restock.status_date else None,
        'note': restock.note,
        'line_summary': restock.line_summary,
        'lines': [
            {
                'id': line.id,
                'item_id': line.item_id,
                'size': line.size,
                'quantity': line.quantity,
                'delivered_quantity': line.delivered_quantity,
                'remaining_quantity': line.remaining_quantity,
            }
            for line in restock.lines
        ],
    }


# ==================== HELPERS ====================

def _credit_deliveries(restock, overrides):
    """Credit received units and move the status to delivered or partial.

    Lines whose ledger row was skipped receive nothing and stay outstanding.
    """
    amounts = {}
    credits = defaultdict(int)
    for line in restock.lines:
        outstanding = line.outstanding_quantity
        requested = outstanding if overrides is None else overrides.get(line.id, outstanding)
        amounts[line.id] = max(min(requested, outstanding), 0)
        if amounts[line.id]:
            credits[stock_ledger.normalize_pair(line.item_id, line.size)] += amounts[line.id]

    if not credits:
        raise LineValidationError(EM.NOTHING_TO_DELIVER)

    applied = stock_ledger.adjust_many(dict(credits))
    if not applied:
        names = stock_ledger.item_names(pair[0] for pair in credits)
        raise LineValidationError([
            EM.STOCK_VARIANT_MISSING.format(item=names[item_id], size=size) for item_id, size in sorted(credits)
        ])

    received = []
    for line in restock.lines:
        pair = stock_ledger.normalize_pair(line.item_id, line.size)
        amount = amounts[line.id] if pair in applied else 0
        # Every line starts its bookkeeping with the first delivery, received or not.
        line.delivered_quantity = (line.delivered_quantity or 0) + amount
        line.remaining_quantity = line.quantity - line.delivered_quantity
        if amount:
            received.append({'line_id': line.id, 'item_id': line.item_id, 'size': line.size, 'quantity': amount})

    complete = all(line.outstanding_quantity == 0 for line in restock.lines)
    target = RestockStatus.DELIVERED if complete else RestockStatus.PARTIAL
    restock.status = target.value
    restock.stamp_status_date(target)
    return received, applied


def _snapshot_for(needs, snapshot):
    if snapshot is None:
        return stock_ledger.LedgerSnapshot.capture(needs.keys(), lock=True)
    snapshot.extend(needs.keys())
    return snapshot


def _require_edge(current, target):
    if target not in RESTOCK_TRANSITIONS[current]:
        raise InvalidTransitionError(current, target)


def _coerce_status(status, message=EM.STATUS_UNKNOWN) -> RestockStatus:
    try:
        return RestockStatus(getattr(status, 'value', status))
    except ValueError:
        raise LineValidationError(message.format(status=status))


def _parse_date(value) -> Optional[date]:
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        raise LineValidationError(EM.DATE_INVALID.format(field='Ordered at', value=value))


def _clean_header(values, partial=False):
    cleaned = {}
    errors = []
    for name, label in REQUIRED_FIELDS.items():
        if partial and name not in values:
            continue
        value = _clean_string(values.get(name))
        if not value:
            errors.append(EM.FIELD_REQUIRED.format(field=label))
        cleaned[name] = value
    if 'note' in values:
        cleaned['note'] = _clean_string(values['note'])
    if errors:
        raise LineValidationError(errors)
    return cleaned


def _line_payload(lines, attr):
    return [
        {'line_id': line.id, 'item_id': line.item_id, 'size': line.size, 'quantity': getattr(line, attr)}
        for line in lines
    ]

"""
Issuance Workflow

Outbound stock: pending -> released -> issued, with returns and
cancellation. Stock leaves the ledger when an issuance enters a
stock-consuming state (released or issued) and comes back on return or on a
revert to pending. ``IssuanceLine.released_quantity`` records what each line
currently holds against the ledger, so a debit or credit is never applied
twice for the same units.
"""

import logging
from collections import defaultdict
from typing import Any, Dict, Mapping, Optional

from sqlalchemy import func

from ..extensions import db
from ..models import (
    ISSUANCE_EDIT_TRANSITIONS,
    ISSUANCE_TRANSITIONS,
    Issuance,
    IssuanceLine,
    IssuanceStatus,
    Site,
)
from ..utils.error_messages import ErrorMessages as EM
from . import audit_log
from . import stock_ledger
from ._lines import _clean_string, _safe_int, normalize_lines, normalize_overrides
from ._unit_of_work import lock_entity, unit_of_work
from .errors import (
    InvalidTransitionError,
    LineValidationError,
    StockroomError,
    UnknownActionError,
)
from .performer import resolve_performer
from .results import TransitionResult

logger = logging.getLogger(__name__)

CREATABLE_STATUSES = (
    IssuanceStatus.PENDING,
    IssuanceStatus.RELEASED,
    IssuanceStatus.ISSUED,
    IssuanceStatus.CANCELLED,
)
EDITABLE_FIELDS = ('site_id', 'issued_to', 'note')


# ==================== CREATE / EDIT ====================

def create_issuance(site_id, issued_to, lines, status=IssuanceStatus.PENDING, note=None, performed_by=None):
    """Create an issuance with all of its lines in one unit of work.

    Creating straight into released or issued debits the ledger exactly as
    ``release`` does; on a shortfall nothing is persisted.
    """
    target = _coerce_status(status, EM.INITIAL_STATUS_INVALID)
    if target not in CREATABLE_STATUSES:
        raise LineValidationError(EM.INITIAL_STATUS_INVALID.format(status=target.value))

    performer = resolve_performer(performed_by)
    with unit_of_work("Create issuance"):
        normalized = normalize_lines(lines)
        site_id = _validate_site(site_id)
        issued_to = _clean_string(issued_to)
        if not issued_to:
            raise LineValidationError(EM.FIELD_REQUIRED.format(field='Issued to'))

        issuance = Issuance(
            site_id=site_id,
            issued_to=issued_to,
            status=IssuanceStatus.PENDING.value,
            note=_clean_string(note),
        )
        issuance.lines = [IssuanceLine(**line) for line in normalized]
        issuance.stamp_status_date(IssuanceStatus.PENDING)
        db.session.add(issuance)
        db.session.flush()

        note_payload = {'lines': _line_payload(issuance.lines, 'quantity')}
        if target.consumes_stock:
            _debit_lines(issuance, None)
        if target is not IssuanceStatus.PENDING:
            issuance.status = target.value
            issuance.stamp_status_date(target)

        audit_log.record_transition(issuance, audit_log.CREATED, performer, {**note_payload, 'status': target.value})

    logger.info(f"ISSUANCE {issuance.id}: created as {target.value} by {performer} ({len(issuance.lines)} lines)")
    return issuance


def update_issuance(issuance_ref, fields: Optional[Mapping[str, Any]] = None, lines=None, status=None,
                    performed_by=None):
    """Edit header fields, replace lines (pending only) and/or move status.

    Status moves use the edit edges: entering released/issued from pending
    debits once, reverting to pending credits once.
    """
    performer = resolve_performer(performed_by)
    with unit_of_work("Update issuance"):
        issuance = lock_entity(Issuance, issuance_ref, 'issuance')
        current = issuance.status_enum
        target = _coerce_status(status) if status is not None else current

        if target is not current and target not in ISSUANCE_EDIT_TRANSITIONS[current]:
            raise InvalidTransitionError(current, target)

        for name, value in (fields or {}).items():
            if name not in EDITABLE_FIELDS:
                continue
            if name == 'site_id':
                value = _validate_site(value)
            elif name == 'issued_to':
                value = _clean_string(value)
                if not value:
                    raise LineValidationError(EM.FIELD_REQUIRED.format(field='Issued to'))
            else:
                value = _clean_string(value)
            setattr(issuance, name, value)

        if lines is not None:
            if current is not IssuanceStatus.PENDING:
                raise LineValidationError(EM.LINES_LOCKED)
            normalized = normalize_lines(lines)
            issuance.lines.clear()
            db.session.flush()
            issuance.lines.extend(IssuanceLine(**line) for line in normalized)
            db.session.flush()

        if target is not current:
            note = _move_status(issuance, current, target)
            audit_log.record_transition(issuance, target, performer, {**note, 'via': 'edit'})
            logger.info(f"ISSUANCE {issuance.id}: {current.value} -> {target.value} by {performer} (edit)")

    return issuance


def _move_status(issuance, current, target):
    """Apply the ledger side of an edit-path status change."""
    if target is IssuanceStatus.PENDING:
        credited = _credit_released(issuance)
        for status in (IssuanceStatus.RELEASED, IssuanceStatus.ISSUED):
            issuance.clear_status_date(status)
        issuance.status = target.value
        return {'restored': credited}

    if target is IssuanceStatus.RETURNED:
        note, _ = _apply_return(issuance, None, True)
        return note

    note = {}
    if target.consumes_stock and not current.consumes_stock:
        _debit_lines(issuance, None)
        note['lines'] = _line_payload(issuance.lines, 'released_quantity')
    issuance.status = target.value
    issuance.stamp_status_date(target)
    return note


# ==================== TRANSITIONS ====================

def release(issuance_ref, performed_by=None, snapshot=None):
    """pending -> released; all lines are debited or none are."""
    performer = resolve_performer(performed_by)
    applied = {}
    with unit_of_work("Release issuance"):
        issuance = lock_entity(Issuance, issuance_ref, 'issuance')
        _require_edge(issuance, IssuanceStatus.RELEASED)
        applied = _debit_lines(issuance, snapshot)
        issuance.status = IssuanceStatus.RELEASED.value
        issuance.stamp_status_date(IssuanceStatus.RELEASED)
        audit_log.record_transition(issuance, IssuanceStatus.RELEASED, performer,
                                    {'lines': _line_payload(issuance.lines, 'released_quantity')})

    if snapshot is not None:
        snapshot.apply(applied)
    logger.info(f"ISSUANCE {issuance.id}: pending -> released by {performer}")
    return issuance


def issue(issuance_ref, performed_by=None, snapshot=None):
    """released -> issued; stock already left at release."""
    performer = resolve_performer(performed_by)
    with unit_of_work("Issue issuance"):
        issuance = lock_entity(Issuance, issuance_ref, 'issuance')
        _require_edge(issuance, IssuanceStatus.ISSUED)
        issuance.status = IssuanceStatus.ISSUED.value
        issuance.stamp_status_date(IssuanceStatus.ISSUED)
        audit_log.record_transition(issuance, IssuanceStatus.ISSUED, performer)

    logger.info(f"ISSUANCE {issuance.id}: released -> issued by {performer}")
    return issuance


def return_issuance(issuance_ref, quantities=None, restore_stock=True, performed_by=None, snapshot=None):
    """released -> returned.

    ``quantities`` maps line id to units to restore; lines left out restore
    everything they released. With ``restore_stock`` off the status still
    moves but the ledger is not touched.
    """
    performer = resolve_performer(performed_by)
    with unit_of_work("Return issuance"):
        issuance = lock_entity(Issuance, issuance_ref, 'issuance')
        _require_edge(issuance, IssuanceStatus.RETURNED)
        note, applied = _apply_return(issuance, quantities, restore_stock)
        audit_log.record_transition(issuance, IssuanceStatus.RETURNED, performer, note)

    if snapshot is not None:
        snapshot.apply(applied)
    logger.info(f"ISSUANCE {issuance.id}: released -> returned by {performer} (restore_stock={restore_stock})")
    return issuance


def cancel(issuance_ref, performed_by=None, snapshot=None):
    """pending -> cancelled; nothing was ever debited."""
    performer = resolve_performer(performed_by)
    with unit_of_work("Cancel issuance"):
        issuance = lock_entity(Issuance, issuance_ref, 'issuance')
        _require_edge(issuance, IssuanceStatus.CANCELLED)
        issuance.status = IssuanceStatus.CANCELLED.value
        issuance.stamp_status_date(IssuanceStatus.CANCELLED)
        audit_log.record_transition(issuance, IssuanceStatus.CANCELLED, performer)

    logger.info(f"ISSUANCE {issuance.id}: pending -> cancelled by {performer}")
    return issuance


ACTIONS = {
    'release': (release, EM.ISSUANCE_RELEASED),
    'issue': (issue, EM.ISSUANCE_ISSUED),
    'return': (return_issuance, EM.ISSUANCE_RETURNED),
    'cancel': (cancel, EM.ISSUANCE_CANCELLED),
}

# Status an entity must be in for a batch action to consider it.
ACTION_SOURCE_STATUS = {
    'release': IssuanceStatus.PENDING,
    'issue': IssuanceStatus.RELEASED,
    'return': IssuanceStatus.RELEASED,
    'cancel': IssuanceStatus.PENDING,
}


def run_action(issuance_ref, action, quantities=None, restore_stock=True, performed_by=None, snapshot=None):
    if action not in ACTIONS:
        raise UnknownActionError(action)
    handler, _ = ACTIONS[action]
    if action == 'return':
        return handler(issuance_ref, quantities=quantities, restore_stock=restore_stock,
                       performed_by=performed_by, snapshot=snapshot)
    return handler(issuance_ref, performed_by=performed_by, snapshot=snapshot)


def perform_issuance_action(issuance_id, action, quantities=None, restore_stock=True, performed_by=None):
    """Run one transition and report the outcome instead of raising."""
    try:
        issuance = run_action(issuance_id, action, quantities, restore_stock, performed_by)
    except StockroomError as e:
        return TransitionResult.from_error(e, entity_id=issuance_id)

    message = ACTIONS[action][1]
    if action == 'return' and not restore_stock:
        message = EM.ISSUANCE_RETURNED_NO_RESTORE
    return TransitionResult.ok(issuance, message)


def perform_issuance_edit(issuance_id, fields=None, lines=None, status=None, performed_by=None):
    """Run a direct edit and report the outcome instead of raising."""
    existing = db.session.get(Issuance, issuance_id)
    previous = existing.status_enum if existing is not None else None
    try:
        issuance = update_issuance(issuance_id, fields, lines=lines, status=status, performed_by=performed_by)
    except StockroomError as e:
        return TransitionResult.from_error(e, entity_id=issuance_id)

    message = EM.ISSUANCE_UPDATED
    if previous is not None and previous.consumes_stock and issuance.status_enum is IssuanceStatus.PENDING:
        message = EM.ISSUANCE_REVERTED
    return TransitionResult.ok(issuance, message)


# ==================== QUERIES ====================

def issuance_status_counts() -> Dict[str, int]:
    rows = db.session.query(Issuance.status, func.count(Issuance.id)).group_by(Issuance.status).all()
    counts = {status.value: 0 for status in IssuanceStatus}
    for status, count in rows:
        counts[status] = count
    counts['all'] = sum(count for _, count in rows)
    return counts


def list_issuances(status=None):
    query = Issuance.query
    if status:
        query = query.filter(Issuance.status == _coerce_status(status).value)
    return query.order_by(Issuance.id.desc()).all()


def issuance_to_dict(issuance) -> Dict[str, Any]:
    return {
        'id': issuance.id,
        'site_id': issuance.site_id,
        'site_name': issuance.site.name if issuance.site else None,
        'issued_to': issuance.issued_to,
        'status': issuance.status,
        'status_date': issuance.status_date.isoformat() if issuance.status_date else None,
        'note': issuance.note,
        'line_summary': issuance.line_summary,
        'lines': [
            {
                'id': line.id,
                'item_id': line.item_id,
                'size': line.size,
                'quantity': line.quantity,
                'released_quantity': line.released_quantity,
                'remaining_quantity': line.remaining_quantity,
            }
            for line in issuance.lines
        ],
    }


# ==================== LEDGER HELPERS ====================

def _debit_lines(issuance, snapshot):
    """Validate every line against the snapshot, then debit them all."""
    lines = [line for line in issuance.lines if line.released_quantity is None]
    needs = stock_ledger.aggregate_needs(lines)
    snapshot = _snapshot_for(needs, snapshot)
    snapshot.require(needs)

    applied = stock_ledger.adjust_many({pair: -qty for pair, qty in needs.items()})
    for line in lines:
        pair = stock_ledger.normalize_pair(line.item_id, line.size)
        line.released_quantity = line.quantity if applied.get(pair) else 0
        line.remaining_quantity = line.released_quantity
    return applied


def _credit_released(issuance):
    """Put back whatever the lines still hold against the ledger."""
    credits = defaultdict(int)
    restored = []
    for line in issuance.lines:
        held = line.remaining_quantity if line.remaining_quantity is not None else line.released_quantity
        if line.released_quantity is not None and held:
            credits[stock_ledger.normalize_pair(line.item_id, line.size)] += held
            restored.append({'line_id': line.id, 'item_id': line.item_id, 'size': line.size, 'quantity': held})
        line.released_quantity = None
        line.remaining_quantity = None
    stock_ledger.adjust_many(dict(credits))
    return restored


def _apply_return(issuance, quantities, restore_stock):
    overrides = normalize_overrides(quantities, [line.id for line in issuance.lines])
    credits = defaultdict(int)
    returned = []
    for line in issuance.lines:
        released = line.released_quantity or 0
        requested = released if overrides is None else overrides.get(line.id, released)
        restore = min(requested, released) if restore_stock else 0
        line.remaining_quantity = released - restore
        if restore:
            credits[stock_ledger.normalize_pair(line.item_id, line.size)] += restore
        returned.append({'line_id': line.id, 'item_id': line.item_id, 'size': line.size, 'quantity': restore})

    applied = stock_ledger.adjust_many(dict(credits))
    issuance.status = IssuanceStatus.RETURNED.value
    issuance.stamp_status_date(IssuanceStatus.RETURNED)
    return {'restore_stock': bool(restore_stock), 'lines': returned}, applied


def _snapshot_for(needs, snapshot):
    if snapshot is None:
        return stock_ledger.LedgerSnapshot.capture(needs.keys(), lock=True)
    snapshot.extend(needs.keys())
    return snapshot


def _require_edge(issuance, target):
    current = issuance.status_enum
    if target not in ISSUANCE_TRANSITIONS[current]:
        raise InvalidTransitionError(current, target)


def _coerce_status(status, message=EM.STATUS_UNKNOWN) -> IssuanceStatus:
    try:
        return IssuanceStatus(getattr(status, 'value', status))
    except ValueError:
        raise LineValidationError(message.format(status=status))


def _validate_site(site_id):
    if site_id in (None, ''):
        return None
    value = _safe_int(site_id)
    if value is None or db.session.get(Site, value) is None:
        raise LineValidationError(EM.SITE_UNKNOWN.format(site_id=site_id))
    return value


def _line_payload(lines, attr):
    return [
        {'line_id': line.id, 'item_id': line.item_id, 'size': line.size, 'quantity': getattr(line, attr)}
        for line in lines
    ]

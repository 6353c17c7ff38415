"""
Audit Trail for Issuances and Restocks

One row per creation and per successful status transition. Rows are added to
the caller's session and committed with the transition that produced them,
so a rolled-back transition leaves no history behind.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from ..extensions import db
from ..models import Issuance, IssuanceLog, Restock, RestockLog
from .errors import EntityNotFoundError

logger = logging.getLogger(__name__)

CREATED = 'created'

_LOG_MODELS = {
    'issuance': (Issuance, IssuanceLog, 'issuance_id'),
    'restock': (Restock, RestockLog, 'restock_id'),
}


def entity_type_of(entity) -> str:
    if isinstance(entity, Issuance):
        return 'issuance'
    if isinstance(entity, Restock):
        return 'restock'
    raise TypeError(f"No audit trail for {type(entity).__name__}")


def serialize_note(note: Any) -> Optional[str]:
    if note is None or note == '' or note == {}:
        return None
    if isinstance(note, str):
        return note
    return json.dumps(note, default=str, sort_keys=True)


def record_transition(entity, action: str, performed_by: str, note: Any = None):
    """Append an entry for ``entity``; the caller commits."""
    entity_type = entity_type_of(entity)
    _, log_model, fk = _LOG_MODELS[entity_type]
    if entity.id is None:
        db.session.flush()

    entry = log_model(
        action=str(getattr(action, 'value', action)),
        performed_by=performed_by,
        note=serialize_note(note),
    )
    setattr(entry, fk, entity.id)
    db.session.add(entry)
    logger.debug(f"AUDIT: {entity_type} {entity.id} {entry.action} by {performed_by}")
    return entry


def history(entity_type: str, entity_id: int) -> List[Dict[str, Any]]:
    """Entries for one entity, newest first."""
    try:
        parent_model, log_model, fk = _LOG_MODELS[entity_type]
    except KeyError:
        raise ValueError(f"Unknown entity type: {entity_type}")

    if db.session.get(parent_model, entity_id) is None:
        raise EntityNotFoundError(entity_type, entity_id)

    rows = (
        log_model.query.filter(getattr(log_model, fk) == entity_id)
        .order_by(log_model.created_at.desc(), log_model.id.desc())
        .all()
    )
    return [_entry_to_dict(row) for row in rows]


def _entry_to_dict(row) -> Dict[str, Any]:
    note = row.note
    if note:
        try:
            note = json.loads(note)
        except ValueError:
            pass
    return {
        'id': row.id,
        'action': row.action,
        'performed_by': row.performed_by,
        'note': note,
        'created_at': row.created_at.isoformat() if row.created_at else None,
    }

"""
Batch transitions over many issuances or restocks.

One locked ledger snapshot is taken for every (item, size) the eligible
entities reference. Entities are then processed in ascending id order, each
validated against the snapshot as it stands after the entities before it,
and each committed on its own. A failure only affects its own entity.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Issuance, Restock
from ..utils.error_messages import ErrorMessages as EM
from . import issuance_workflow, restock_workflow, stock_ledger
from ._lines import _safe_int
from .errors import LineValidationError, StockroomError, UnknownActionError
from .performer import resolve_performer

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    action: str
    changed_ids: List[int] = field(default_factory=list)
    skipped: List[Dict[str, Any]] = field(default_factory=list)
    failed: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def changed(self) -> int:
        return len(self.changed_ids)

    def skip(self, entity_id, reason: str) -> None:
        self.skipped.append({'id': entity_id, 'reason': reason})

    def fail(self, entity_id, messages: List[str]) -> None:
        self.failed.append({'id': entity_id, 'messages': list(messages)})

    def to_dict(self) -> Dict[str, Any]:
        return {
            'action': self.action,
            'changed': self.changed,
            'changed_ids': self.changed_ids,
            'skipped': self.skipped,
            'failed': self.failed,
        }


class BatchProcessor:
    """Apply one workflow action to a set of entities of one type."""

    def __init__(self, entity_type: str, performed_by: Optional[str] = None):
        if entity_type == 'issuance':
            self.model = Issuance
            self.workflow = issuance_workflow
            self.sources = {k: frozenset({v}) for k, v in issuance_workflow.ACTION_SOURCE_STATUS.items()}
        elif entity_type == 'restock':
            self.model = Restock
            self.workflow = restock_workflow
            self.sources = dict(restock_workflow.ACTION_SOURCE_STATUSES)
        else:
            raise ValueError(f"Unknown entity type: {entity_type}")
        self.entity_type = entity_type
        self.performed_by = resolve_performer(performed_by)

    def run(self, action: str, ids: Iterable[Any], quantities: Optional[Mapping[Any, Mapping]] = None,
            restore_stock: bool = True) -> BatchResult:
        """
        ``quantities`` optionally maps entity id to that entity's per-line
        overrides, in the same shape the single-entity action accepts.
        """
        if action not in self.sources:
            raise UnknownActionError(action)

        if quantities is not None and not isinstance(quantities, Mapping):
            raise LineValidationError(EM.OVERRIDES_INVALID)

        result = BatchResult(action=action)
        overrides = {_safe_int(k): v for k, v in (quantities or {}).items()}
        eligible = self._partition(action, ids, result)
        if not eligible:
            return result

        pairs = {
            stock_ledger.normalize_pair(line.item_id, line.size)
            for entity in eligible
            for line in entity.lines
        }
        snapshot = stock_ledger.LedgerSnapshot.capture(pairs, lock=True)

        for entity in eligible:
            entity_id = entity.id
            kwargs = {'quantities': overrides.get(entity_id), 'performed_by': self.performed_by, 'snapshot': snapshot}
            if self.entity_type == 'issuance':
                kwargs['restore_stock'] = restore_stock
            try:
                self.workflow.run_action(entity, action, **kwargs)
            except StockroomError as e:
                result.fail(entity_id, e.messages)
                continue
            except SQLAlchemyError as e:
                db.session.rollback()
                logger.error(f"BATCH {self.entity_type} {action}: entity {entity_id} failed: {e}")
                result.fail(entity_id, [EM.BATCH_ENTITY_FAILED.format(entity_id=entity_id)])
                continue
            result.changed_ids.append(entity_id)

        logger.info(
            f"BATCH {self.entity_type} {action}: changed={result.changed} "
            f"skipped={len(result.skipped)} failed={len(result.failed)} by {self.performed_by}"
        )
        return result

    def _partition(self, action, ids, result):
        wanted = set()
        for raw in ids:
            entity_id = _safe_int(raw)
            if entity_id is None:
                result.skip(raw, EM.BATCH_INVALID_ID.format(value=raw))
            else:
                wanted.add(entity_id)
        wanted = sorted(wanted)
        if not wanted:
            return []

        found = {
            entity.id: entity
            for entity in self.model.query.filter(self.model.id.in_(wanted)).order_by(self.model.id).all()
        }
        eligible = []
        for entity_id in wanted:
            entity = found.get(entity_id)
            if entity is None:
                result.skip(entity_id, EM.ENTITY_NOT_FOUND.format(entity=self.entity_type.capitalize(),
                                                                  entity_id=entity_id))
            elif entity.status_enum not in self.sources[action]:
                result.skip(entity_id, EM.BATCH_NOT_ELIGIBLE.format(status=entity.status, action=action))
            else:
                eligible.append(entity)
        return eligible


def bulk_release(ids, performed_by=None) -> BatchResult:
    return BatchProcessor('issuance', performed_by).run('release', ids)


def bulk_issue(ids, performed_by=None) -> BatchResult:
    return BatchProcessor('issuance', performed_by).run('issue', ids)


def bulk_return_issuances(ids, quantities=None, restore_stock=True, performed_by=None) -> BatchResult:
    return BatchProcessor('issuance', performed_by).run('return', ids, quantities, restore_stock)


def bulk_cancel_issuances(ids, performed_by=None) -> BatchResult:
    return BatchProcessor('issuance', performed_by).run('cancel', ids)


def bulk_deliver(ids, quantities=None, performed_by=None) -> BatchResult:
    return BatchProcessor('restock', performed_by).run('deliver', ids, quantities)


def bulk_return_restocks(ids, quantities=None, performed_by=None) -> BatchResult:
    return BatchProcessor('restock', performed_by).run('return', ids, quantities)


def bulk_cancel_restocks(ids, performed_by=None) -> BatchResult:
    return BatchProcessor('restock', performed_by).run('cancel', ids)

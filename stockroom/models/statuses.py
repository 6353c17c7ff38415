"""
Status vocabularies for the two workflows and the date column each status
stamps. The tables are checked for completeness at import so a new status
cannot be added without naming its column.
"""
from enum import Enum


class IssuanceStatus(str, Enum):
    PENDING = 'pending'
    RELEASED = 'released'
    ISSUED = 'issued'
    RETURNED = 'returned'
    CANCELLED = 'cancelled'

    @property
    def consumes_stock(self) -> bool:
        """Stock for the lines has left the ledger while in this state."""
        return self in (IssuanceStatus.RELEASED, IssuanceStatus.ISSUED)


class RestockStatus(str, Enum):
    PENDING = 'pending'
    DELIVERED = 'delivered'
    PARTIAL = 'partial'
    RETURNED = 'returned'
    CANCELLED = 'cancelled'


ISSUANCE_STATUS_DATE_FIELDS = {
    IssuanceStatus.PENDING: 'pending_at',
    IssuanceStatus.RELEASED: 'released_at',
    IssuanceStatus.ISSUED: 'issued_at',
    IssuanceStatus.RETURNED: 'returned_at',
    IssuanceStatus.CANCELLED: 'cancelled_at',
}

RESTOCK_STATUS_DATE_FIELDS = {
    RestockStatus.PENDING: 'ordered_at',
    RestockStatus.DELIVERED: 'delivered_at',
    RestockStatus.PARTIAL: 'partial_at',
    RestockStatus.RETURNED: 'returned_at',
    RestockStatus.CANCELLED: 'cancelled_at',
}

# Workflow edges (dedicated transition calls)
ISSUANCE_TRANSITIONS = {
    IssuanceStatus.PENDING: frozenset({IssuanceStatus.RELEASED, IssuanceStatus.CANCELLED}),
    IssuanceStatus.RELEASED: frozenset({IssuanceStatus.ISSUED, IssuanceStatus.RETURNED}),
    IssuanceStatus.ISSUED: frozenset(),
    IssuanceStatus.RETURNED: frozenset(),
    IssuanceStatus.CANCELLED: frozenset(),
}

# Direct status edits additionally allow skipping straight to issued and
# reverting a stock-consuming state back to pending.
ISSUANCE_EDIT_TRANSITIONS = {
    IssuanceStatus.PENDING: frozenset({IssuanceStatus.RELEASED, IssuanceStatus.ISSUED, IssuanceStatus.CANCELLED}),
    IssuanceStatus.RELEASED: frozenset({IssuanceStatus.ISSUED, IssuanceStatus.RETURNED, IssuanceStatus.PENDING}),
    IssuanceStatus.ISSUED: frozenset({IssuanceStatus.PENDING}),
    IssuanceStatus.RETURNED: frozenset(),
    IssuanceStatus.CANCELLED: frozenset(),
}

RESTOCK_TRANSITIONS = {
    RestockStatus.PENDING: frozenset({RestockStatus.DELIVERED, RestockStatus.PARTIAL, RestockStatus.CANCELLED}),
    RestockStatus.PARTIAL: frozenset({RestockStatus.DELIVERED, RestockStatus.PARTIAL, RestockStatus.RETURNED}),
    RestockStatus.DELIVERED: frozenset({RestockStatus.RETURNED}),
    RestockStatus.RETURNED: frozenset(),
    RestockStatus.CANCELLED: frozenset(),
}


def _assert_exhaustive(enum_cls, *tables):
    for table in tables:
        missing = set(enum_cls) - set(table)
        if missing:
            names = ', '.join(sorted(m.value for m in missing))
            raise RuntimeError(f"{enum_cls.__name__} table is missing: {names}")


_assert_exhaustive(IssuanceStatus, ISSUANCE_STATUS_DATE_FIELDS, ISSUANCE_TRANSITIONS, ISSUANCE_EDIT_TRANSITIONS)
_assert_exhaustive(RestockStatus, RESTOCK_STATUS_DATE_FIELDS, RESTOCK_TRANSITIONS)

from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, List, Mapping

from ..errors import InsufficientStockError, Shortfall
from ._core import Pair, item_names, normalize_pair, resolve_batch


class LedgerSnapshot:
    """In-memory view of ledger levels used to validate transitions.

    Single transitions capture a fresh locked snapshot right before they
    mutate; the batch processor captures one for the whole batch and feeds
    each entity's applied deltas back in with ``apply``.
    """

    def __init__(self, levels: Mapping[Pair, int] | None = None):
        self.levels: Dict[Pair, int] = dict(levels or {})

    @classmethod
    def capture(cls, pairs: Iterable[Pair], *, lock: bool = True) -> "LedgerSnapshot":
        return cls(resolve_batch(pairs, lock=lock))

    def extend(self, pairs: Iterable[Pair], *, lock: bool = True) -> None:
        missing = {normalize_pair(*pair) for pair in pairs} - set(self.levels)
        if missing:
            self.levels.update(resolve_batch(missing, lock=lock))

    def available(self, pair: Pair) -> int:
        return self.levels.get(normalize_pair(*pair), 0)

    def shortfalls(self, needs: Mapping[Pair, int]) -> List[Shortfall]:
        """Every pair whose need exceeds what the snapshot holds."""
        short = []
        for pair in sorted(needs):
            needed = needs[pair]
            available = self.available(pair)
            if needed > available:
                short.append((pair, needed, available))
        if not short:
            return []
        names = item_names(pair[0] for pair, _, _ in short)
        return [
            Shortfall(item_id=pair[0], item_name=names[pair[0]], size=pair[1], needed=needed, available=available)
            for pair, needed, available in short
        ]

    def require(self, needs: Mapping[Pair, int]) -> None:
        shortfalls = self.shortfalls(needs)
        if shortfalls:
            raise InsufficientStockError(shortfalls)

    def apply(self, deltas: Mapping[Pair, int]) -> None:
        for pair, delta in deltas.items():
            key = normalize_pair(*pair)
            self.levels[key] = self.levels.get(key, 0) + delta


def aggregate_needs(lines, quantity_of=lambda line: line.quantity) -> Dict[Pair, int]:
    """Sum quantities per (item, size) so duplicate lines are checked together."""
    needs: Dict[Pair, int] = defaultdict(int)
    for line in lines:
        qty = int(quantity_of(line) or 0)
        if qty > 0:
            needs[normalize_pair(line.item_id, line.size)] += qty
    return dict(needs)

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class TransitionResult:
    """Outcome of one workflow call as handed to the presentation layer."""

    success: bool
    messages: List[str] = field(default_factory=list)
    status: Optional[str] = None
    entity_id: Optional[int] = None
    error_type: Optional[str] = None

    @classmethod
    def ok(cls, entity, message: str) -> "TransitionResult":
        return cls(success=True, messages=[message], status=entity.status, entity_id=entity.id)

    @classmethod
    def from_error(cls, error, entity_id=None) -> "TransitionResult":
        return cls(
            success=False,
            messages=list(error.messages),
            entity_id=entity_id,
            error_type=error.error_type,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'messages': self.messages,
            'status': self.status,
            'entity_id': self.entity_id,
            'error_type': self.error_type,
        }

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from src.config.constants import ChangeKind, Collections


class ChangeEvent(BaseModel):
    """A create/update notification for one document, with before/after snapshots."""

    entity: Collections
    kind: ChangeKind
    document_id: str = Field(..., min_length=1)
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None

    def before_value(self, field: str, default: Any = None) -> Any:
        return (self.before or {}).get(field, default)

    def after_value(self, field: str, default: Any = None) -> Any:
        return (self.after or {}).get(field, default)

    def changed(self, field: str) -> bool:
        return self.before_value(field) != self.after_value(field)


class ChangeEventPayload(BaseModel):
    """Body posted by the hosting event system; entity and kind come from the path."""

    document_id: str = Field(..., min_length=1)
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None


class HandlerOutcome(BaseModel):
    handler: str
    status: str  # ok | failed
    error: Optional[str] = None
    retryable: bool = False


class DispatchResult(BaseModel):
    entity: Collections
    kind: ChangeKind
    document_id: str
    outcomes: List[HandlerOutcome] = []

    @property
    def failed(self) -> bool:
        return any(outcome.status == "failed" for outcome in self.outcomes)

    @property
    def should_retry(self) -> bool:
        return any(outcome.retryable for outcome in self.outcomes)

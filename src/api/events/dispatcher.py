"""
Registration and dispatch table for store change events.

Handlers are keyed by (entity type, change kind). Dispatch runs every
handler registered for the event's key in registration order and catches
failures at the handler boundary: nothing propagates to the caller, each
outcome is logged and reported in the DispatchResult so the HTTP layer can
ask the host to redeliver when a failure is retryable.
"""

from collections import defaultdict
from typing import Awaitable, Callable, Dict, List, Tuple

from src.api.events.models import ChangeEvent, DispatchResult, HandlerOutcome
from src.config.constants import ChangeKind, Collections
from src.shared.error_handler import ErrorHandler

EventHandler = Callable[[ChangeEvent], Awaitable[None]]
HandlerKey = Tuple[Collections, ChangeKind]


def _handler_name(handler: EventHandler) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)


class EventDispatcher:
    def __init__(self):
        self._handlers: Dict[HandlerKey, List[EventHandler]] = defaultdict(list)
        self._error_handler = ErrorHandler(__name__)

    def add_handler(self, entity: Collections, kind: ChangeKind, handler: EventHandler) -> None:
        self._handlers[(Collections(entity), ChangeKind(kind))].append(handler)

    def register(self, entity: Collections, kind: ChangeKind):
        """Decorator form of add_handler."""
        def decorator(handler: EventHandler) -> EventHandler:
            self.add_handler(entity, kind, handler)
            return handler
        return decorator

    def handlers_for(self, entity: Collections, kind: ChangeKind) -> List[EventHandler]:
        return list(self._handlers.get((Collections(entity), ChangeKind(kind)), []))

    async def dispatch(self, event: ChangeEvent) -> DispatchResult:
        result = DispatchResult(entity=event.entity, kind=event.kind, document_id=event.document_id)
        handlers = self.handlers_for(event.entity, event.kind)
        if not handlers:
            self._error_handler.logger.debug(
                f"No handlers for {event.entity.value}/{event.kind.value}"
            )
            return result

        for handler in handlers:
            name = _handler_name(handler)
            try:
                await handler(event)
                result.outcomes.append(HandlerOutcome(handler=name, status="ok"))
            except Exception as e:
                result.outcomes.append(self._failure(name, event, e))

        return result

    async def on_store_change(self, collection: str, kind: str, doc_id: str, before, after) -> None:
        """Store change listener; lets InMemoryStore drive the dispatcher directly."""
        if collection not in {c.value for c in Collections}:
            return
        await self.dispatch(ChangeEvent(
            entity=Collections(collection), kind=ChangeKind(kind),
            document_id=doc_id, before=before, after=after,
        ))

    def _failure(self, name: str, event: ChangeEvent, error: Exception) -> HandlerOutcome:
        context = {"handler": name, "document_id": event.document_id}
        operation = f"{name} for {event.entity.value}/{event.document_id}"
        error = self._error_handler.to_domain_error(error, operation, context)
        return HandlerOutcome(
            handler=name, status="failed", error=str(error), retryable=error.retryable
        )

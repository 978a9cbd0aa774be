from fastapi import APIRouter, Depends, HTTPException, status

from src.api.events.dispatcher import EventDispatcher
from src.api.events.models import ChangeEvent, ChangeEventPayload, DispatchResult
from src.config.constants import ChangeKind, Collections
from src.core.responses import success_response
from src.dependencies.services import get_dispatcher

events_router = APIRouter(prefix="/events", tags=["Events"])


@events_router.post(
    "/{entity}/{kind}",
    summary="Receive a document change event",
    response_model=DispatchResult,
)
async def receive_change_event(
    entity: Collections,
    kind: ChangeKind,
    payload: ChangeEventPayload,
    dispatcher: EventDispatcher = Depends(get_dispatcher),
):
    """
    Entry point for the hosting event system. Answers 503 when a handler
    failed for a retryable reason so the event is delivered again; every
    other outcome, including non-retryable failures, is acknowledged.
    """
    event = ChangeEvent(entity=entity, kind=kind, **payload.model_dump())
    result = await dispatcher.dispatch(event)

    if result.should_retry:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=result.model_dump(mode="json"),
        )
    return success_response(result.model_dump(mode="json"))

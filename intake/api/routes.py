from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from intake.api.auth import require_api_key
from intake.api.schemas import EventResponse, InboundEvent, PromptOut
from intake.core.orchestrator import get_engine

router = APIRouter()


@router.post("/events", response_model=EventResponse, dependencies=[Depends(require_api_key)])
async def post_event(event: InboundEvent):
    """
    Chat transport webhook: one inbound user event in, the prompts to send back out.
    The engine is synchronous (Redis lock, delivery retries), so it runs in the
    threadpool and a slow submission only holds up its own user.
    """
    engine = get_engine()
    reply = await run_in_threadpool(engine.handle_event, event.userId, event.kind, event.payload)
    return EventResponse(
        status="success",
        outcome=reply.outcome.value,
        prompts=[PromptOut(text=p.text, choices=p.choices) for p in reply.prompts],
    )

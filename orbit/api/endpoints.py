"""API endpoints for the chat assistant."""

import json
from collections.abc import AsyncIterator
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from orbit import __version__
from orbit.config import Settings, get_settings
from orbit.errors import ConfirmationPending, InvalidToolTransition, ModelNotConfigured, UnknownToolCall
from orbit.models.conversation import (
    ChatRequest,
    HealthResponse,
    MessagesResponse,
    StopResponse,
    SuccessResponse,
    ToolResultRequest,
)
from orbit.services.conversation import ConversationAgent, get_conversation_agent
from orbit.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


def get_agent(settings: Settings = Depends(get_settings)) -> ConversationAgent:
    """Conversation agent dependency; 503 until a model key is configured."""
    if not settings.has_model_key:
        raise HTTPException(status_code=503, detail=str(ModelNotConfigured()))
    return get_conversation_agent()


@router.post("/chat", tags=["Chat"])
async def chat(request: ChatRequest, agent: ConversationAgent = Depends(get_agent)) -> StreamingResponse:
    """Run a conversation turn and stream its events as newline-delimited JSON.

    Omit ``message`` to resume after confirmation decisions were recorded.
    """
    if request.message is not None:
        try:
            agent.llm.validate_user_message(request.message)
        except ValueError as e:
            logger.warning(f"Message validation error: {e}")
            raise HTTPException(status_code=400, detail=str(e)) from e
        logger.info(f"Processing message: {request.message[:50]}...")

    # run_turn checks for pending confirmations under the agent lock; the first
    # event is pulled here so that rejection is still a 409
    turn = agent.run_turn(request.message)
    try:
        first_event = await anext(turn)
    except ConfirmationPending as e:
        logger.warning(str(e))
        raise HTTPException(status_code=409, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Conversation turn failed to start: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e)) from e

    async def event_stream() -> AsyncIterator[str]:
        yield first_event.model_dump_json() + "\n"
        try:
            async for event in turn:
                yield event.model_dump_json() + "\n"
        except Exception as e:
            logger.error(f"Conversation turn failed: {e}", exc_info=True)
            yield json.dumps({"type": "error", "message": str(e)}) + "\n"
        finally:
            await turn.aclose()

    return StreamingResponse(event_stream(), media_type="application/x-ndjson")


@router.post("/chat/tool-result", response_model=SuccessResponse, tags=["Chat"])
async def add_tool_result(
    request: ToolResultRequest, agent: ConversationAgent = Depends(get_agent)
) -> SuccessResponse:
    """Record a confirmation decision (or custom result) for a pending tool call."""
    try:
        agent.add_tool_result(request.tool_call_id, request.result)
    except UnknownToolCall as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except InvalidToolTransition as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return SuccessResponse(success=True)


@router.post("/chat/stop", response_model=StopResponse, tags=["Chat"])
async def stop_chat(agent: ConversationAgent = Depends(get_agent)) -> StopResponse:
    """Stop the turn in progress, if any."""
    running = agent.busy
    if running:
        agent.stop()
    return StopResponse(stopped=running)


@router.get("/chat/messages", response_model=MessagesResponse, tags=["Chat"])
async def get_messages(agent: ConversationAgent = Depends(get_agent)) -> MessagesResponse:
    return MessagesResponse(messages=agent.messages)


@router.delete("/chat/messages", response_model=SuccessResponse, tags=["Chat"])
async def clear_messages(agent: ConversationAgent = Depends(get_agent)) -> SuccessResponse:
    await agent.clear_history()
    return SuccessResponse(success=True)


@router.get("/check-model-key", response_model=SuccessResponse, tags=["Health"])
async def check_model_key(settings: Settings = Depends(get_settings)) -> SuccessResponse:
    """Report whether a model API key is configured."""
    if not settings.has_model_key:
        logger.error("ANTHROPIC_API_KEY is not set; add it to the environment or a .env file")
    return SuccessResponse(success=settings.has_model_key)


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        version=__version__,
    )

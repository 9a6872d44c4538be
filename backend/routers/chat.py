import logging
import uuid

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.concurrency import run_in_threadpool

from database import get_store
from errors import NotFoundError, ValidationError
from models.schemas import ConversationOut, PromptEnvelope, PromptRequest
from services.history import ConversationStore
from services.ollama import OllamaClient, get_ollama_client
from services.relay import PromptRelay, StreamingRelay

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat")

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.post("/prompt", status_code=201, response_model=PromptEnvelope, tags=["prompts"])
async def register_prompt(
    request: PromptRequest,
    store: ConversationStore = Depends(get_store),
    client: OllamaClient = Depends(get_ollama_client),
):
    """
    Send a prompt to Ollama, creating a conversation or appending to an existing one.
    With `stream: true` the response is a Server-Sent Events stream of
    `{response, done}` increments instead of a single JSON envelope.
    """
    if request.conversation_id:
        conversation = await run_in_threadpool(store.find_conversation, request.conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation not found for the given id")
    else:
        conversation = await run_in_threadpool(store.create_conversation)
        logger.info("Created conversation %s", conversation.id)

    model = request.model or client.config.default_model
    prompt = await run_in_threadpool(store.create_prompt, conversation.id, request.prompt, model)
    if prompt is None:
        raise NotFoundError("Conversation not found for the given id")

    if request.stream:
        relay = StreamingRelay(client, store, conversation.id, prompt.id, request.prompt, model)
        return StreamingResponse(
            relay.events(),
            media_type="text/event-stream",
            headers={**SSE_HEADERS, "x-conversation-id": conversation.id, "x-prompt-id": prompt.id},
        )

    relay = PromptRelay(client, store, conversation.id, prompt.id, request.prompt, model)
    envelope = PromptEnvelope.model_validate(await relay.run())
    return JSONResponse(status_code=201, content=envelope.model_dump(mode="json", by_alias=True))


@router.get("/conversation/{conversation_id}", response_model=ConversationOut, tags=["conversations"])
async def read_conversation(conversation_id: str, store: ConversationStore = Depends(get_store)):
    """Fetch a conversation with all its prompts, oldest first."""
    try:
        conversation_id = str(uuid.UUID(conversation_id))
    except ValueError:
        raise ValidationError(
            "Invalid id format. Use a valid UUID.",
            errors=[{"field": "id", "message": "id must be a valid UUID"}],
        )
    conversation = await run_in_threadpool(store.find_conversation_with_prompts, conversation_id)
    if conversation is None:
        raise NotFoundError("No conversation found with this id")
    return conversation

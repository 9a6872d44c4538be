import logging

from fastapi import APIRouter, Depends

from models.schemas import ModelList
from services.ollama import OllamaClient, get_ollama_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["models"])


@router.get("/models", response_model=ModelList)
async def list_models(client: OllamaClient = Depends(get_ollama_client)):
    """
    List the models installed on the Ollama server.
    When CHAT_API_OLLAMA_MODEL is configured only that model is returned.
    """
    models = await client.list_models()
    wanted = client.config.model_filter
    if wanted:
        models = [m for m in models if m.get("name") == wanted]
    logger.info("Listing %d Ollama model(s)", len(models))
    return {"total_models": len(models), "models": models}

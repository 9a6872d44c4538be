import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from logging_config import setup_logging
from settings import settings

# 1. Setup logging and App
setup_logging(settings.get_log_level())
logger = logging.getLogger("xat_api.http")


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    from services.relay import drain_background_tasks
    await drain_background_tasks()


app = FastAPI(
    lifespan=lifespan,
    title="Xat API",
    version="1.0.0",
    description="Stores conversations and prompts and generates responses with Ollama.",
)

# 2. Setup CORS: allow all, expose the ids sent with SSE responses
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["x-conversation-id", "x-prompt-id"]
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    status = "500"
    try:
        response = await call_next(request)
        status = str(response.status_code)
        return response
    finally:
        logger.info(
            "%s %s %s %.1fms", request.method, request.url.path, status, (time.time() - start) * 1000
        )


# 3. Error handlers
from errors import register_exception_handlers
register_exception_handlers(app)

# 4. Import Models BEFORE create_all to ensure they are registered in Base.metadata
from database import Base, engine
from models import db_models  # CRITICAL: Ensures models are registered
Base.metadata.create_all(bind=engine)

# 5. Include Routers
from routers import chat, models
app.include_router(chat.router)
app.include_router(models.router)


@app.get("/")
def read_root():
    return {"status": "Xat API is running", "ollama": settings.get_ollama_url()}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=3000)

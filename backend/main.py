"""Main entry point for the AI-kun Fudosan LINE webhook."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from config import PORT, LOG_FORMAT, LOG_LEVEL, SERVICE_NAME, HISTORY_LIMIT, LINE_CHANNEL_SECRET
from logger import setup_logging
from models.events import WebhookPayload
from services.conversation_handler import ConversationHandler
from services.event_dispatcher import EventDispatcher
from services.history_store import create_history_store
from services.line_client import LineMessagingClient, verified_body
from services.llm_client import LLMClient
from services.prompts import load_system_prompt, fallback_message

if LOG_FORMAT == "json":
    setup_logging(LOG_LEVEL)

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


async def build_services(app: FastAPI) -> None:
    """Construct every collaborator once and attach it to app.state."""
    logger.info("Initializing webhook services...")

    try:
        llm_client = LLMClient()
        line_client = LineMessagingClient()
        history_store = await create_history_store()

        handler = ConversationHandler(
            history_store=history_store,
            llm_client=llm_client,
            reply_sender=line_client,
            system_prompt=load_system_prompt(),
            fallback_text=fallback_message(),
            history_limit=HISTORY_LIMIT,
        )
    except Exception as e:
        logger.error(f"Failed to initialize services: {e}", exc_info=True)
        raise

    app.state.line_client = line_client
    app.state.history_backend = history_store.name
    app.state.dispatcher = EventDispatcher(handler)
    logger.info(f"All services initialized (history={history_store.name})")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Tests inject a dispatcher up front; only build real clients otherwise
    if getattr(app.state, "dispatcher", None) is None:
        await build_services(app)

    yield

    dispatcher: EventDispatcher = app.state.dispatcher
    if dispatcher.in_flight:
        logger.info(f"Waiting for {dispatcher.in_flight} in-flight events")
    await dispatcher.drain()

    line_client = getattr(app.state, "line_client", None)
    if line_client is not None:
        await line_client.aclose()


def create_app(
    dispatcher: Optional[EventDispatcher] = None,
    channel_secret: Optional[str] = None,
) -> FastAPI:
    app = FastAPI(
        title=SERVICE_NAME,
        description="LINE chatbot that answers real-estate questions with an LLM",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.dispatcher = dispatcher
    app.state.channel_secret = channel_secret or LINE_CHANNEL_SECRET
    app.state.history_backend = None

    @app.get("/", response_class=PlainTextResponse)
    async def root() -> str:
        """Health probe."""
        return f"{SERVICE_NAME} Running"

    @app.get("/health")
    async def health(request: Request):
        return {
            "status": "healthy",
            "service": SERVICE_NAME,
            "version": VERSION,
            "history_backend": request.app.state.history_backend,
        }

    @app.post("/callback")
    async def callback(request: Request, body: bytes = Depends(verified_body)) -> Response:
        """
        LINE webhook receiver.

        Per-event work runs in background tasks, so the 200 goes out
        regardless of what the LLM, LINE push or Supabase do afterwards.
        """
        try:
            payload = WebhookPayload.model_validate_json(body)
        except ValidationError as e:
            logger.warning(f"Rejected malformed webhook body: {e.error_count()} errors")
            raise HTTPException(status_code=400, detail="Invalid webhook payload")

        request.app.state.dispatcher.dispatch(payload)
        return Response(status_code=200)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting {SERVICE_NAME} on port {PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)

from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from constants import CORS_ORIGINS
from event_router import EventRouter
from registry import ConnectionRegistry
from routers.chats import chats_router
from routers.messages import messages_router
from routers.users import users_router
from logging_config import get_logger, setup_logging
import os

# Setup logging
log_level = os.getenv("LOG_LEVEL", "INFO")
log_file = os.getenv("LOG_FILE", None)
setup_logging(log_level=log_level, log_file=log_file)
logger = get_logger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(title="chat-relay")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(users_router)
    app.include_router(chats_router)
    app.include_router(messages_router)

    # Room membership lives for the lifetime of this app object only
    app.state.registry = ConnectionRegistry()
    app.state.event_router = EventRouter(app.state.registry)

    @app.get("/", response_class=PlainTextResponse)
    async def index():
        return "API is running..."

    @app.get("/realtime/stats")
    async def realtime_stats(request: Request):
        router: EventRouter = request.app.state.event_router
        return {**router.registry.stats(), "dropped_events": dict(router.dropped)}

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """Real-time event channel.

        Frames are JSON text `{"event": name, "data": payload}`. Each frame is
        fully routed before the next one from the same connection is read.
        """
        registry: ConnectionRegistry = websocket.app.state.registry
        router: EventRouter = websocket.app.state.event_router

        await websocket.accept()
        connection = registry.register(websocket)
        logger.info(f"Connected to websocket: connection {connection.id}")

        try:
            message_count = 0
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    logger.info(f"WebSocket disconnected for connection {connection.id} (user {connection.user_id})")
                    break
                message_count += 1
                logger.debug(f"Received frame #{message_count} from connection {connection.id}")

                data = message.get("text")
                if data is None:
                    # Binary frames carry no event; drop them and keep the link
                    router.reject(connection.id, "binary frame")
                    continue
                try:
                    await router.dispatch(connection.id, data)
                except Exception as e:
                    logger.error(f"Error routing frame from connection {connection.id}: {e}", exc_info=True)
        except Exception as e:
            logger.error(f"WebSocket error for connection {connection.id}: {e}", exc_info=True)
        finally:
            registry.unregister(connection.id)

    logger.info("FastAPI application initialized")
    return app


app = create_app()

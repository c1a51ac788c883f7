import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from traffic_chat.core.config import settings
from traffic_chat.core.database import init_db
from traffic_chat.api import auto_replies, chat, conversations, messages, notifications
from traffic_chat.services.realtime import get_hub


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Configure logging based on debug setting
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s" if settings.debug
        else "%(levelname)-8s %(name)s: %(message)s",
    )

    init_db()

    yield

    # Drop realtime listeners left behind by clients that never disconnected cleanly
    get_hub().clear()


app = FastAPI(title=settings.app_name, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(chat.router, prefix="/api/chat", tags=["realtime"])
app.include_router(conversations.router, prefix="/api/chat/conversations", tags=["conversations"])
app.include_router(messages.router, prefix="/api/chat/messages", tags=["messages"])
app.include_router(auto_replies.router, prefix="/api/chat/auto-replies", tags=["auto-replies"])
app.include_router(notifications.router, prefix="/api/admin/notifications", tags=["notifications"])


@app.get("/api/health")
async def health():
    return {"status": "ok", "app": settings.app_name}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)

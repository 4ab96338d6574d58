"""FastAPI application entrypoint for the live chat server."""
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import auth, messages, realtime, users
from .config import (
    CLOUDINARY_API_KEY,
    CLOUDINARY_API_SECRET,
    CLOUDINARY_CLOUD_NAME,
    CORS_ORIGINS,
    HOST,
    IMAGE_UPLOAD_TIMEOUT_SECONDS,
    PORT,
)
from .database import Base, engine
from .dispatcher import DeliveryDispatcher
from .errors import install_error_handlers
from .images import CloudinaryImageHost, ImageHost, UnconfiguredImageHost
from .logging_config import configure_logging
from .presence import PresenceRegistry

logger = configure_logging()


def default_image_host() -> ImageHost:
    if CLOUDINARY_CLOUD_NAME and CLOUDINARY_API_KEY and CLOUDINARY_API_SECRET:
        return CloudinaryImageHost(
            CLOUDINARY_CLOUD_NAME,
            CLOUDINARY_API_KEY,
            CLOUDINARY_API_SECRET,
            timeout=IMAGE_UPLOAD_TIMEOUT_SECONDS,
        )
    logger.warning("IMAGE_HOST_UNCONFIGURED uploads will fail until Cloudinary credentials are set")
    return UnconfiguredImageHost()


def create_app(image_host: Optional[ImageHost] = None, create_tables: bool = True) -> FastAPI:
    """Build the application with a fresh presence registry and dispatcher."""
    if create_tables:
        Base.metadata.create_all(bind=engine)

    app = FastAPI(title="Live Chat Server", version="1.0.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS or ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(app)

    presence = PresenceRegistry()
    app.state.presence = presence
    app.state.dispatcher = DeliveryDispatcher(presence)
    app.state.image_host = image_host or default_image_host()

    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(messages.router)
    app.include_router(realtime.router)

    @app.get("/")
    def root():
        return {"success": True, "message": "Server is live"}

    return app


def main() -> None:
    uvicorn.run("live_chat.server.main:create_app", factory=True, host=HOST, port=PORT, reload=False)


if __name__ == "__main__":
    main()

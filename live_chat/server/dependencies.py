"""FastAPI dependencies exposing the per-application collaborators."""
from fastapi import Request

from .dispatcher import DeliveryDispatcher
from .images import ImageHost
from .presence import PresenceRegistry


def get_presence(request: Request) -> PresenceRegistry:
    return request.app.state.presence


def get_dispatcher(request: Request) -> DeliveryDispatcher:
    return request.app.state.dispatcher


def get_image_host(request: Request) -> ImageHost:
    return request.app.state.image_host

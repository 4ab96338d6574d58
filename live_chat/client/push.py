"""Background listener for the server push channel (``/ws``)."""
import asyncio
import json
import threading
from typing import Any, Callable, Dict, Optional, Set
from urllib.parse import urlencode, urlsplit, urlunsplit

import aiohttp

from .api import APIError
from .models import ChatMessage

UNAUTHORIZED_CLOSE_CODE = 4401


def push_url(base_url: str, token: str) -> str:
    parts = urlsplit(base_url.rstrip("/"))
    scheme = "wss" if parts.scheme == "https" else "ws"
    return urlunsplit((scheme, parts.netloc, f"{parts.path}/ws", urlencode({"token": token}), ""))


class PushHandler:
    """Applies push events to the client's view of the world.

    Messages from the peer whose chat is open are printed and marked seen;
    messages from anyone else bump that sender's unseen badge.
    """

    def __init__(self, api, notify: Callable[[str], None] = print):
        self.api = api
        self.notify = notify
        self.open_peer_id: Optional[int] = None
        self.online: Set[int] = set()
        self.unseen: Dict[int, int] = {}
        self._lock = threading.Lock()

    def open_chat(self, peer_id: Optional[int]) -> None:
        with self._lock:
            self.open_peer_id = peer_id
            if peer_id is not None:
                self.unseen.pop(peer_id, None)

    def is_online(self, user_id: int) -> bool:
        with self._lock:
            return user_id in self.online

    def handle(self, frame: Dict[str, Any]) -> None:
        event = frame.get("event")
        data = frame.get("data")
        if event == "online_users":
            with self._lock:
                self.online = set(data or [])
        elif event == "new_message":
            self._on_new_message(ChatMessage.from_api(data))
        elif event == "reaction_update":
            reactions = " ".join(r["emoji"] for r in data.get("reactions", [])) or "(none)"
            self.notify(f"Reactions on #{data['message_id']}: {reactions}")

    def _on_new_message(self, message: ChatMessage) -> None:
        with self._lock:
            from_open_peer = message.sender_id == self.open_peer_id
            if not from_open_peer:
                self.unseen[message.sender_id] = self.unseen.get(message.sender_id, 0) + 1
        if not from_open_peer:
            self.notify(f"New message from user {message.sender_id}")
            return
        body = message.text or ""
        if message.image:
            body = f"{body} [image: {message.image}]".strip()
        self.notify(f"#{message.id} [{message.created_at:%H:%M}] {message.sender_id}: {body}")
        try:
            self.api.mark_seen(message.id)
        except (APIError, OSError) as exc:
            self.notify(f"Could not mark #{message.id} as seen: {exc}")


class PushListener:
    """Keeps one push connection open in a daemon thread, reconnecting with backoff."""

    def __init__(self, base_url: str, token: str, handler: PushHandler):
        self.url = push_url(base_url, token)
        self.handler = handler
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        self._stop.clear()
        self._thread = threading.Thread(target=lambda: asyncio.run(self.run()), name="push-ws", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 2.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    async def run(self) -> None:
        """Listen until stopped or the server rejects the session token."""
        backoff_s = 0.5
        while not self._stop.is_set():
            try:
                async with aiohttp.ClientSession() as session:
                    async with session.ws_connect(self.url, heartbeat=20) as ws:
                        backoff_s = 0.5
                        await self._read(ws)
                        if ws.close_code == UNAUTHORIZED_CLOSE_CODE:
                            self.handler.notify("Push channel rejected the session; please log in again.")
                            return
            except aiohttp.WSServerHandshakeError as exc:
                if exc.status in (401, 403):
                    self.handler.notify("Push channel rejected the session; please log in again.")
                    return
                self.handler.notify(f"Push channel unavailable: {exc}")
            except (aiohttp.ClientError, OSError) as exc:
                self.handler.notify(f"Push channel unavailable: {exc}")
            if self._stop.is_set():
                break
            await asyncio.sleep(backoff_s)
            backoff_s = min(backoff_s * 2, 5.0)

    async def _read(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        while not self._stop.is_set():
            try:
                msg = await ws.receive(timeout=1.0)
            except asyncio.TimeoutError:
                continue
            if msg.type == aiohttp.WSMsgType.TEXT:
                try:
                    frame = json.loads(msg.data)
                except json.JSONDecodeError:
                    continue
                if isinstance(frame, dict):
                    self.handler.handle(frame)
            elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.ERROR):
                break

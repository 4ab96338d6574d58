"""Shared fixtures: an in-memory app, a fake image host and fake sockets."""
import asyncio
import time
from typing import Any, List

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from live_chat.server.database import Base, get_db
from live_chat.server.images import ImageHost
from live_chat.server.main import create_app

STRONG_PASSWORD = "Secret123"


class FakeImageHost(ImageHost):
    def __init__(self, fail: bool = False, delay: float = 0.0):
        self.fail = fail
        self.delay = delay
        self.uploads: List[tuple] = []

    def upload(self, data: str, folder: str, **options: Any) -> str:
        if self.delay:
            time.sleep(self.delay)
        if self.fail:
            raise RuntimeError("upstream unavailable")
        self.uploads.append((folder, options))
        return f"https://images.test/{folder}/{len(self.uploads)}.png"


class FakeSocket:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List[dict] = []

    async def send_json(self, data: dict) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)

    def events(self, name: str) -> List[Any]:
        return [frame["data"] for frame in self.sent if frame["event"] == name]


def make_session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


class AppHarness:
    """A running app on an in-memory database, driven through TestClient."""

    def __init__(self, image_host: ImageHost = None):
        self.image_host = image_host or FakeImageHost()
        self.Session = make_session_factory()
        self.app = create_app(image_host=self.image_host, create_tables=False)

        def override_get_db():
            db = self.Session()
            try:
                yield db
            finally:
                db.close()

        self.app.dependency_overrides[get_db] = override_get_db
        self.client = TestClient(self.app)

    def __enter__(self) -> "AppHarness":
        self.client.__enter__()
        return self

    def __exit__(self, *exc_info) -> None:
        self.client.__exit__(*exc_info)

    @property
    def presence(self):
        return self.app.state.presence

    def signup(self, email: str, full_name: str = "Test User", password: str = STRONG_PASSWORD, bio: str = "hi"):
        resp = self.client.post(
            "/auth/signup",
            json={"full_name": full_name, "email": email, "password": password, "bio": bio},
        )
        body = resp.json()
        assert body["success"], body
        return body["user"]["id"], body["token"]

    @staticmethod
    def auth(token: str) -> dict:
        return {"Authorization": f"Bearer {token}"}


def on_event_loop() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


def recording_loop_use(func, calls: List[bool]):
    """Wrap ``func`` so each call records whether it ran on the event loop thread."""

    def wrapper(*args, **kwargs):
        calls.append(on_event_loop())
        return func(*args, **kwargs)

    return wrapper

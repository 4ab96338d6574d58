"""HTTP API client for interacting with the live chat server."""
from typing import Any, Dict, List, Optional

import requests

from .storage import get_token


class APIError(Exception):
    """Raised when the server answers with ``success: false``."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class APIClient:
    def __init__(self, base_url: str, timeout: float = 10):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        token = get_token()
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        resp = requests.request(
            method, f"{self.base_url}{path}", headers=self._headers(), timeout=self.timeout, **kwargs
        )
        try:
            body = resp.json()
        except ValueError:
            resp.raise_for_status()
            raise APIError("Server returned a non-JSON response", resp.status_code)
        if not body.get("success"):
            raise APIError(body.get("message") or f"Request failed ({resp.status_code})", resp.status_code)
        return body

    def signup(self, full_name: str, email: str, password: str, bio: str) -> Dict[str, Any]:
        payload = {"full_name": full_name, "email": email, "password": password, "bio": bio}
        return self._request("POST", "/auth/signup", json=payload)

    def login(self, email: str, password: str) -> Dict[str, Any]:
        return self._request("POST", "/auth/login", json={"email": email, "password": password})

    def check_auth(self) -> Dict[str, Any]:
        return self._request("GET", "/auth/check")["user"]

    def update_profile(
        self,
        full_name: Optional[str] = None,
        bio: Optional[str] = None,
        profile_pic: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload = {"full_name": full_name, "bio": bio, "profile_pic": profile_pic}
        return self._request("PUT", "/auth/update-profile", json=payload)["user"]

    def list_users(self) -> Dict[str, Any]:
        return self._request("GET", "/users")

    def get_messages(self, peer_id: int) -> List[Dict[str, Any]]:
        return self._request("GET", f"/messages/{peer_id}")["messages"]

    def send_message(self, receiver_id: int, text: Optional[str] = None, image: Optional[str] = None) -> Dict[str, Any]:
        return self._request("POST", f"/messages/send/{receiver_id}", json={"text": text, "image": image})["message"]

    def mark_seen(self, message_id: int) -> None:
        self._request("PUT", f"/messages/mark/{message_id}")

    def react(self, message_id: int, emoji: str) -> List[Dict[str, Any]]:
        return self._request("POST", f"/messages/react/{message_id}", json={"emoji": emoji})["reactions"]

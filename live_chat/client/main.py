"""Console client for the live chat application."""
import base64
import mimetypes
import sys
from pathlib import Path
from typing import Dict, List, Optional

from . import api
from .models import ChatMessage, User
from .push import PushHandler, PushListener
from .storage import clear_auth, get_server_url, get_token, get_user, store_auth, store_server_url, store_user
from ..shared.utils import is_email_valid, is_password_strong


def encode_image(path: str) -> str:
    """Read an image file into a data URI accepted by the image host."""
    file_path = Path(path).expanduser()
    mime = mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"
    if not mime.startswith("image/"):
        raise ValueError(f"Not an image file: {file_path.name}")
    encoded = base64.b64encode(file_path.read_bytes()).decode()
    return f"data:{mime};base64,{encoded}"


class ChatClient:
    """Interactive console client for direct messages."""

    def __init__(self, server_url: str):
        self.server_url = server_url
        self.api = api.APIClient(server_url)
        self.current_user = get_user()
        self.push_handler = PushHandler(self.api)
        self.push_listener: Optional[PushListener] = None

    def signup(self) -> bool:
        print("=== Sign up ===")
        full_name = input("Full name: ").strip()
        email = input("Email: ").strip()
        password = input("Password (8+ chars, upper, lower, digit): ").strip()
        bio = input("Bio: ").strip()

        if not is_email_valid(email):
            print("Invalid email format.")
            return False
        if not is_password_strong(password):
            print("Password too weak.")
            return False
        try:
            response = self.api.signup(full_name, email, password, bio)
        except Exception as exc:  # noqa: BLE001
            print(f"Sign up failed: {exc}")
            return False
        self._store_session(response)
        return True

    def login(self) -> bool:
        print("=== Login ===")
        email = input("Email: ").strip()
        password = input("Password: ").strip()
        try:
            response = self.api.login(email, password)
        except Exception as exc:  # noqa: BLE001
            print(f"Login failed: {exc}")
            return False
        self._store_session(response)
        return True

    def _store_session(self, response: Dict) -> None:
        store_auth(response["token"], response["user"])
        self.current_user = response["user"]
        print(f"Welcome, {self.current_user['full_name']}!")
        self.start_push(response["token"])

    def start_push(self, token: str) -> None:
        self.stop_push()
        self.push_listener = PushListener(self.server_url, token, self.push_handler)
        self.push_listener.start()

    def stop_push(self) -> None:
        if self.push_listener is not None:
            self.push_listener.stop()
            self.push_listener = None

    def list_users(self) -> Dict[int, User]:
        try:
            sidebar = self.api.list_users()
        except Exception as exc:  # noqa: BLE001
            print(f"Could not fetch users: {exc}")
            return {}
        online = set(sidebar.get("online_users", []))
        unseen = sidebar.get("unseen_messages", {})
        users = {u["id"]: User.from_api(u, online, unseen) for u in sidebar["users"]}
        for u in users.values():
            marker = "*" if u.online else " "
            badge = f" [{u.unseen} new]" if u.unseen else ""
            print(f"{marker} {u.id}: {u.full_name} <{u.email}>{badge}")
        return users

    def start_chat(self) -> None:
        users = self.list_users()
        raw = input("Enter user id to chat with: ").strip()
        peer = users.get(int(raw)) if raw.isdigit() else None
        if not peer:
            print("User not found.")
            return
        self.push_handler.open_chat(peer.id)
        messages = self._open(peer)
        while True:
            status = "online" if self.push_handler.is_online(peer.id) else "offline"
            print(f"\n[{peer.full_name} is {status}]")
            print("Chat commands: [s]end, [i]mage, [e]moji react, [m]ark seen, [r]efresh, [b]ack")
            cmd = input("> ").strip().lower()
            if cmd == "b":
                self.push_handler.open_chat(None)
                break
            if cmd == "s":
                self._send(peer, text=input("Message: "))
            if cmd == "i":
                self._send_image(peer, input("Image path: ").strip())
            if cmd == "e":
                self._react(messages)
            if cmd == "m":
                self._mark_seen()
            if cmd == "r":
                messages = self._open(peer)

    def _open(self, peer: User) -> List[ChatMessage]:
        try:
            messages = [ChatMessage.from_api(m) for m in self.api.get_messages(peer.id)]
        except Exception as exc:  # noqa: BLE001
            print(f"Could not fetch messages: {exc}")
            return []
        for msg in messages:
            direction = "(you)" if msg.sender_id == self.current_user["id"] else peer.full_name
            body = msg.text or ""
            if msg.image:
                body = f"{body} [image: {msg.image}]".strip()
            reactions = msg.reaction_summary()
            suffix = f"  {reactions}" if reactions else ""
            print(f"#{msg.id} [{msg.created_at:%H:%M}] {direction}: {body}{suffix}")
        if not messages:
            print("No messages yet.")
        return messages

    def _send(self, peer: User, text: Optional[str] = None, image: Optional[str] = None) -> None:
        try:
            message = self.api.send_message(peer.id, text=text, image=image)
            print(f"Message #{message['id']} sent.")
        except Exception as exc:  # noqa: BLE001
            print(f"Failed to send message: {exc}")

    def _send_image(self, peer: User, path: str) -> None:
        try:
            image = encode_image(path)
        except (OSError, ValueError) as exc:
            print(f"Could not read image: {exc}")
            return
        caption = input("Caption (optional): ").strip() or None
        self._send(peer, text=caption, image=image)

    def _react(self, messages: List[ChatMessage]) -> None:
        raw = input("Message id: ").strip()
        if not raw.isdigit() or int(raw) not in {m.id for m in messages}:
            print("Unknown message id.")
            return
        emoji = input("Emoji: ").strip()
        try:
            reactions = self.api.react(int(raw), emoji)
            print(f"Reactions now: {' '.join(r['emoji'] for r in reactions) or '(none)'}")
        except Exception as exc:  # noqa: BLE001
            print(f"Failed to react: {exc}")

    def _mark_seen(self) -> None:
        raw = input("Message id: ").strip()
        if not raw.isdigit():
            print("Unknown message id.")
            return
        try:
            self.api.mark_seen(int(raw))
            print("Marked as seen.")
        except Exception as exc:  # noqa: BLE001
            print(f"Failed to mark as seen: {exc}")

    def update_profile(self) -> None:
        print("=== Profile (leave blank to keep) ===")
        full_name = input("Full name: ").strip() or None
        bio = input("Bio: ").strip() or None
        picture_path = input("Profile picture path: ").strip()
        try:
            profile_pic = encode_image(picture_path) if picture_path else None
            user = self.api.update_profile(full_name=full_name, bio=bio, profile_pic=profile_pic)
        except Exception as exc:  # noqa: BLE001
            print(f"Profile update failed: {exc}")
            return
        store_user(user)
        self.current_user = user
        print("Profile updated.")

    def logout(self):
        self.stop_push()
        clear_auth()
        self.current_user = None
        print("Logged out.")


def main():
    print("Live Chat Client")
    default_url = get_server_url() or "http://127.0.0.1:8000"
    server_url = input(f"Server URL [{default_url}]: ").strip() or default_url
    store_server_url(server_url)
    client = ChatClient(server_url)

    while True:
        print("\nMenu: [s]ignup, [l]ogin, [q]uit")
        choice = input("> ").strip().lower()
        if choice == "q":
            sys.exit(0)
        signed_in = False
        if choice == "s":
            signed_in = client.signup()
        if choice == "l":
            signed_in = client.login()
        if signed_in:
            while get_token():
                print("\nUser menu: [u]sers, [c]hat, [p]rofile, [o]logout")
                sub = input("> ").strip().lower()
                if sub == "o":
                    client.logout()
                    break
                if sub == "u":
                    client.list_users()
                if sub == "c":
                    client.start_chat()
                if sub == "p":
                    client.update_profile()


if __name__ == "__main__":
    main()

import unittest

from sqlalchemy import inspect

from live_chat.server import conversations
from live_chat.server.errors import Forbidden, NotFound, ValidationFailed
from live_chat.server.models import Message, User

from .helpers import make_session_factory


class ConversationStoreTests(unittest.TestCase):
    def setUp(self):
        self.db = make_session_factory()()
        self.addCleanup(self.db.close)
        for user_id, name in ((1, "alice"), (2, "bob"), (3, "carol")):
            self.db.add(User(id=user_id, email=f"{name}@example.com", full_name=name, bio="", password_hash="x"))
        self.db.commit()

    def _unseen_from(self, sender_id, receiver_id):
        return (
            self.db.query(Message)
            .filter(Message.sender_id == sender_id, Message.receiver_id == receiver_id, Message.seen.is_(False))
            .count()
        )

    def test_create_message_strips_text_and_starts_unseen(self):
        message = conversations.create_message(self.db, 1, 2, "  hi  ")

        self.assertEqual(message.text, "hi")
        self.assertFalse(message.seen)
        self.assertEqual(message.reactions, [])

    def test_empty_message_is_rejected_and_not_stored(self):
        for text in (None, "", "   "):
            with self.assertRaises(ValidationFailed):
                conversations.create_message(self.db, 1, 2, text, None)
        self.assertEqual(self.db.query(Message).count(), 0)

    def test_image_only_message_is_accepted(self):
        message = conversations.create_message(self.db, 1, 2, None, "https://images.test/a.png")

        self.assertIsNone(message.text)
        self.assertEqual(message.image, "https://images.test/a.png")

    def test_message_to_unknown_user_or_self_is_rejected(self):
        with self.assertRaises(NotFound):
            conversations.create_message(self.db, 1, 99, "hi")
        with self.assertRaises(ValidationFailed):
            conversations.create_message(self.db, 1, 1, "hi")

    def test_open_conversation_marks_peer_messages_seen(self):
        conversations.create_message(self.db, 1, 2, "one")
        conversations.create_message(self.db, 1, 2, "two")
        conversations.create_message(self.db, 2, 1, "reply")
        conversations.create_message(self.db, 3, 2, "other thread")

        history = conversations.open_conversation(self.db, 2, 1)

        self.assertEqual([m.text for m in history], ["one", "two", "reply"])
        self.assertTrue(all(m.seen for m in history if m.sender_id == 1))
        self.assertEqual(self._unseen_from(1, 2), 0)
        # Bob's own reply stays unseen for Alice, and Carol's thread is untouched.
        self.assertEqual(self._unseen_from(2, 1), 1)
        self.assertEqual(self._unseen_from(3, 2), 1)

    def test_open_conversation_returns_loaded_rows(self):
        message = conversations.create_message(self.db, 1, 2, "hi")
        conversations.toggle_reaction(self.db, message.id, 2, "👍")

        history = conversations.open_conversation(self.db, 2, 1)

        state = inspect(history[0])
        self.assertEqual(state.expired_attributes, set())
        self.assertNotIn("reactions", state.unloaded)
        self.assertTrue(history[0].seen)
        self.assertEqual([r.emoji for r in history[0].reactions], ["👍"])

    def test_open_conversation_with_unknown_peer(self):
        with self.assertRaises(NotFound):
            conversations.open_conversation(self.db, 1, 42)

    def test_unseen_counts_are_grouped_by_sender(self):
        conversations.create_message(self.db, 1, 2, "a")
        conversations.create_message(self.db, 1, 2, "b")
        conversations.create_message(self.db, 3, 2, "c")
        conversations.create_message(self.db, 2, 1, "d")

        self.assertEqual(conversations.unseen_counts(self.db, 2), {1: 2, 3: 1})

        conversations.open_conversation(self.db, 2, 1)

        self.assertEqual(conversations.unseen_counts(self.db, 2), {3: 1})

    def test_mark_seen_only_by_receiver_and_only_once(self):
        message = conversations.create_message(self.db, 1, 2, "hi")

        self.assertFalse(conversations.mark_seen(self.db, message.id, 1))
        self.assertFalse(conversations.mark_seen(self.db, message.id, 3))
        self.assertTrue(conversations.mark_seen(self.db, message.id, 2))
        self.assertFalse(conversations.mark_seen(self.db, message.id, 2))
        self.assertFalse(conversations.mark_seen(self.db, 12345, 2))
        self.assertEqual(conversations.unseen_counts(self.db, 2), {})

    def test_reaction_toggle_is_an_involution(self):
        message = conversations.create_message(self.db, 1, 2, "hi")
        conversations.toggle_reaction(self.db, message.id, 2, "❤️")
        before = [(r.user_id, r.emoji) for r in message.reactions]

        conversations.toggle_reaction(self.db, message.id, 1, "👍")
        after_once = [(r.user_id, r.emoji) for r in message.reactions]
        conversations.toggle_reaction(self.db, message.id, 1, "👍")
        after_twice = [(r.user_id, r.emoji) for r in message.reactions]

        self.assertEqual(after_once, before + [(1, "👍")])
        self.assertEqual(after_twice, before)

    def test_distinct_emojis_from_same_user_accumulate(self):
        message = conversations.create_message(self.db, 1, 2, "hi")
        for emoji in ("👍", "😂", "🎉"):
            conversations.toggle_reaction(self.db, message.id, 2, emoji)

        self.assertEqual([r.emoji for r in message.reactions], ["👍", "😂", "🎉"])

    def test_reaction_rules(self):
        message = conversations.create_message(self.db, 1, 2, "hi")

        with self.assertRaises(ValidationFailed):
            conversations.toggle_reaction(self.db, message.id, 1, "  ")
        with self.assertRaises(NotFound):
            conversations.toggle_reaction(self.db, 999, 1, "👍")
        with self.assertRaises(Forbidden):
            conversations.toggle_reaction(self.db, message.id, 3, "👍")
        self.db.refresh(message)
        self.assertEqual(message.reactions, [])


if __name__ == "__main__":
    unittest.main()

import unittest

from live_chat.server import conversations
from live_chat.server.dispatcher import NEW_MESSAGE_EVENT, REACTION_UPDATE_EVENT, DeliveryDispatcher
from live_chat.server.models import Message, User
from live_chat.server.presence import Connection, PresenceRegistry
from live_chat.server.schemas import MessageOut

from .helpers import FakeSocket, make_session_factory


def _message(message_id=1, sender_id=1, receiver_id=2):
    return {
        "id": message_id,
        "sender_id": sender_id,
        "receiver_id": receiver_id,
        "text": "hi",
        "image": None,
        "seen": False,
        "created_at": "2024-01-01T00:00:00",
        "reactions": [],
    }


class DeliveryDispatcherTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.presence = PresenceRegistry()
        self.dispatcher = DeliveryDispatcher(self.presence)

    async def _connect(self, user_id, fail=False):
        socket = FakeSocket(fail=fail)
        await self.presence.register(user_id, Connection(user_id, socket))
        return socket

    async def test_new_message_pushed_to_connected_receiver(self):
        receiver = await self._connect(2)
        sender = await self._connect(1)

        delivered = await self.dispatcher.deliver_new_message(_message())

        self.assertTrue(delivered)
        self.assertEqual(receiver.events(NEW_MESSAGE_EVENT), [_message()])
        self.assertEqual(sender.events(NEW_MESSAGE_EVENT), [])

    async def test_new_message_for_offline_receiver_is_deferred(self):
        sender = await self._connect(1)

        delivered = await self.dispatcher.deliver_new_message(_message())

        self.assertFalse(delivered)
        self.assertEqual(sender.events(NEW_MESSAGE_EVENT), [])

    async def test_push_failure_is_swallowed(self):
        await self._connect(2, fail=True)

        delivered = await self.dispatcher.deliver_new_message(_message())

        self.assertFalse(delivered)

    async def test_reaction_update_reaches_both_participants_only(self):
        sender = await self._connect(1)
        receiver = await self._connect(2)
        bystander = await self._connect(3)
        reactions = [{"emoji": "👍", "user_id": 2}]

        delivered = await self.dispatcher.deliver_reaction_update(10, reactions, 1, 2)

        expected = [{"message_id": 10, "reactions": reactions}]
        self.assertEqual(delivered, 2)
        self.assertEqual(sender.events(REACTION_UPDATE_EVENT), expected)
        self.assertEqual(receiver.events(REACTION_UPDATE_EVENT), expected)
        self.assertEqual(bystander.events(REACTION_UPDATE_EVENT), [])

    async def test_reaction_update_with_one_participant_offline(self):
        receiver = await self._connect(2)

        delivered = await self.dispatcher.deliver_reaction_update(10, [], 1, 2)

        self.assertEqual(delivered, 1)
        self.assertEqual(len(receiver.events(REACTION_UPDATE_EVENT)), 1)

    async def test_delivery_does_not_touch_the_store(self):
        Session = make_session_factory()
        db = Session()
        self.addCleanup(db.close)
        db.add_all(
            [
                User(id=1, email="a@example.com", full_name="A", bio="", password_hash="x"),
                User(id=2, email="b@example.com", full_name="B", bio="", password_hash="x"),
            ]
        )
        db.commit()
        message = conversations.create_message(db, 1, 2, "hi")
        await self._connect(2)

        await self.dispatcher.deliver_new_message(MessageOut.model_validate(message).model_dump(mode="json"))

        db.expire_all()
        stored = db.query(Message).all()
        self.assertEqual(len(stored), 1)
        self.assertFalse(stored[0].seen)
        self.assertEqual(conversations.unseen_counts(db, 2), {1: 1})


if __name__ == "__main__":
    unittest.main()

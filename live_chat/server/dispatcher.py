"""Best-effort live delivery of stored messages and reaction changes."""
from typing import Any, Dict, Iterable, List

from .logging_config import configure_logging
from .presence import PresenceRegistry

logger = configure_logging()

NEW_MESSAGE_EVENT = "new_message"
REACTION_UPDATE_EVENT = "reaction_update"


class DeliveryDispatcher:
    """Pushes events to whichever participants are connected.

    The dispatcher only reads presence and writes to sockets. Anything it
    fails to push is still in the store and reaches the client on its next
    fetch.
    """

    def __init__(self, presence: PresenceRegistry):
        self.presence = presence

    async def deliver_new_message(self, message: Dict[str, Any]) -> bool:
        receiver_id = message["receiver_id"]
        connection = self.presence.lookup(receiver_id)
        if connection is None:
            logger.info("DELIVERY_DEFERRED message_id=%s receiver_id=%s", message["id"], receiver_id)
            return False
        delivered = await connection.push(NEW_MESSAGE_EVENT, message)
        logger.info(
            "DELIVERY_PUSH message_id=%s receiver_id=%s delivered=%s", message["id"], receiver_id, delivered
        )
        return delivered

    async def deliver_reaction_update(
        self,
        message_id: int,
        reactions: List[Dict[str, Any]],
        sender_id: int,
        receiver_id: int,
    ) -> int:
        payload = {"message_id": message_id, "reactions": reactions}
        delivered = 0
        for user_id in _unique((sender_id, receiver_id)):
            connection = self.presence.lookup(user_id)
            if connection is not None and await connection.push(REACTION_UPDATE_EVENT, payload):
                delivered += 1
        logger.info("REACTION_PUSH message_id=%s delivered=%s", message_id, delivered)
        return delivered


def _unique(user_ids: Iterable[int]) -> List[int]:
    seen = []
    for user_id in user_ids:
        if user_id not in seen:
            seen.append(user_id)
    return seen

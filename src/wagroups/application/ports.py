"""Application ports (interfaces). Implemented by infrastructure adapters.

Adapters raise wagroups.domain.errors.StoreError (or its Conflict / NotFound
subclasses) for every failure of the backing service.
"""

from datetime import datetime
from typing import Protocol

from wagroups.application.dto import DirectoryItem, Interaction, RoutingTarget
from wagroups.domain import Group, GroupMember


class DirectoryStore(Protocol):
    """Key-value maps holding directory items (e.g. Twilio Sync maps)."""

    def fetch_map(self, name: str) -> str:
        """Return the map's id. Raises NotFound if the map does not exist."""
        ...

    def create_map(self, name: str) -> str:
        """Create a map that never expires and return its id."""
        ...

    def create_item(self, map_name: str, key: str, data: dict) -> DirectoryItem:
        """Create an item. Raises Conflict if the key already exists."""
        ...

    def fetch_item(self, map_name: str, key: str) -> DirectoryItem:
        """Return one item. Raises NotFound if the map or the key is missing."""
        ...

    def update_item(self, map_name: str, key: str, data: dict) -> DirectoryItem:
        """Replace the data of an existing item. Raises NotFound if missing."""
        ...

    def delete_item(self, map_name: str, key: str) -> None:
        """Remove an item. Raises NotFound if missing."""
        ...

    def list_items(self, map_name: str, page_size: int) -> list[DirectoryItem]:
        """Return the first page of items (at most page_size)."""
        ...


class ConversationStore(Protocol):
    """Group conversations and their participants (e.g. Twilio Conversations)."""

    def create_participant(
        self,
        group_id: str,
        *,
        identity: str | None = None,
        address: str | None = None,
        proxy_address: str | None = None,
        friendly_name: str | None = None,
    ) -> GroupMember:
        """Bind either a chat identity or a messaging address to the group."""
        ...

    def list_participants(self, group_id: str) -> list[GroupMember]:
        ...

    def fetch_participant(self, group_id: str, participant_sid: str) -> GroupMember:
        ...

    def remove_participant(self, group_id: str, participant_sid: str) -> None:
        ...

    def create_conversation(self, friendly_name: str, attributes: dict) -> Group:
        ...

    def fetch_conversation(self, group_id: str) -> Group:
        """Raises NotFound if the conversation does not exist."""
        ...

    def list_conversations(
        self, start_date: datetime, end_date: datetime, limit: int
    ) -> list[Group]:
        """Conversations created in [start_date, end_date], newest first."""
        ...

    def update_conversation(
        self, group_id: str, friendly_name: str, attributes: dict
    ) -> Group:
        ...

    def delete_conversation(self, group_id: str) -> None:
        ...


class MessageSender(Protocol):
    """Sends pre-approved WhatsApp templates."""

    def send_template(self, content_sid: str, from_: str, to: str) -> str:
        """Send the template and return the message id."""
        ...


class FlexStore(Protocol):
    """Agent hand-off: Flex interactions and TaskRouter routing targets."""

    def create_interaction(self, conversation_sid: str, routing: dict) -> Interaction:
        """Bind a customer-initiated WhatsApp interaction to the conversation."""
        ...

    def create_invite(self, interaction_sid: str, channel_sid: str, routing: dict) -> str:
        """Invite a worker or queue to the interaction channel; returns the invite id."""
        ...

    def list_workers(self, limit: int) -> list[RoutingTarget]:
        ...

    def list_queues(self, limit: int) -> list[RoutingTarget]:
        ...

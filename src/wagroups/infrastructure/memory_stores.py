"""In-memory implementations of the directory and conversation stores (no network)."""

import uuid
from dataclasses import replace
from datetime import datetime, timezone

from wagroups.application.dto import DirectoryItem, Interaction, RoutingTarget
from wagroups.domain import Conflict, Group, GroupMember, NotFound, StoreError


def _sid(prefix: str) -> str:
    return prefix + uuid.uuid4().hex


class InMemoryDirectoryStore:
    """Maps of items kept in memory. Item order preserved by insertion."""

    def __init__(self) -> None:
        self._maps: dict[str, dict[str, DirectoryItem]] = {}
        self._map_ids: dict[str, str] = {}

    def fetch_map(self, name: str) -> str:
        if name not in self._maps:
            raise NotFound(f"Sync map {name!r} not found", status=404)
        return self._map_ids[name]

    def create_map(self, name: str) -> str:
        if name in self._maps:
            raise Conflict(f"Sync map {name!r} already exists", status=409)
        self._maps[name] = {}
        self._map_ids[name] = _sid("MP")
        return self._map_ids[name]

    def _items(self, map_name: str) -> dict[str, DirectoryItem]:
        try:
            return self._maps[map_name]
        except KeyError:
            raise NotFound(f"Sync map {map_name!r} not found", status=404) from None

    def create_item(self, map_name: str, key: str, data: dict) -> DirectoryItem:
        items = self._items(map_name)
        if key in items:
            raise Conflict(f"Item with key {key!r} already exists", code=54305, status=409)
        item = DirectoryItem(key=key, data=dict(data), sid=_sid("IT"))
        items[key] = item
        return item

    def fetch_item(self, map_name: str, key: str) -> DirectoryItem:
        items = self._items(map_name)
        if key not in items:
            raise NotFound(f"Item with key {key!r} not found", status=404)
        return items[key]

    def update_item(self, map_name: str, key: str, data: dict) -> DirectoryItem:
        items = self._items(map_name)
        if key not in items:
            raise NotFound(f"Item with key {key!r} not found", status=404)
        item = replace(items[key], data=dict(data))
        items[key] = item
        return item

    def delete_item(self, map_name: str, key: str) -> None:
        items = self._items(map_name)
        if key not in items:
            raise NotFound(f"Item with key {key!r} not found", status=404)
        del items[key]

    def list_items(self, map_name: str, page_size: int) -> list[DirectoryItem]:
        return list(self._items(map_name).values())[:page_size]


class InMemoryConversationStore:
    """Conversations and participants kept in memory."""

    def __init__(self) -> None:
        self._groups: dict[str, Group] = {}
        self._members: dict[str, list[GroupMember]] = {}

    def _group(self, group_id: str) -> Group:
        try:
            return self._groups[group_id]
        except KeyError:
            raise NotFound(f"Conversation {group_id} not found", status=404) from None

    def create_participant(
        self,
        group_id: str,
        *,
        identity: str | None = None,
        address: str | None = None,
        proxy_address: str | None = None,
        friendly_name: str | None = None,
    ) -> GroupMember:
        self._group(group_id)
        members = self._members[group_id]
        if not identity and not address:
            raise StoreError("A participant needs an identity or a messaging address", status=400)
        for member in members:
            if identity and member.identity == identity:
                raise Conflict("Participant already exists", code=50433, status=409)
            if address and member.address == address:
                raise Conflict("Participant already exists", code=50416, status=409)
        member = GroupMember(
            sid=_sid("MB"),
            identity=identity or None,
            address=address or None,
            proxy_address=proxy_address if address else None,
            attributes={"friendlyName": friendly_name} if friendly_name else {},
        )
        members.append(member)
        return member

    def list_participants(self, group_id: str) -> list[GroupMember]:
        self._group(group_id)
        return list(self._members[group_id])

    def fetch_participant(self, group_id: str, participant_sid: str) -> GroupMember:
        self._group(group_id)
        for member in self._members[group_id]:
            if member.sid == participant_sid:
                return member
        raise NotFound(f"Participant {participant_sid} not found", status=404)

    def remove_participant(self, group_id: str, participant_sid: str) -> None:
        self._group(group_id)
        members = self._members[group_id]
        for i, member in enumerate(members):
            if member.sid == participant_sid:
                del members[i]
                return
        raise NotFound(f"Participant {participant_sid} not found", status=404)

    def create_conversation(self, friendly_name: str, attributes: dict) -> Group:
        now = datetime.now(timezone.utc)
        group = Group(
            sid=_sid("CH"),
            friendly_name=friendly_name,
            attributes=dict(attributes),
            state="active",
            date_created=now,
            date_updated=now,
        )
        self._groups[group.sid] = group
        self._members[group.sid] = []
        return group

    def fetch_conversation(self, group_id: str) -> Group:
        return self._group(group_id)

    def list_conversations(
        self, start_date: datetime, end_date: datetime, limit: int
    ) -> list[Group]:
        groups = [
            g
            for g in self._groups.values()
            if g.date_created is None or start_date <= g.date_created <= end_date
        ]
        groups.sort(key=lambda g: g.date_created or start_date, reverse=True)
        return groups[:limit]

    def update_conversation(
        self, group_id: str, friendly_name: str, attributes: dict
    ) -> Group:
        group = replace(
            self._group(group_id),
            friendly_name=friendly_name,
            attributes=dict(attributes),
            date_updated=datetime.now(timezone.utc),
        )
        self._groups[group_id] = group
        return group

    def set_state(self, group_id: str, state: str | None) -> None:
        self._groups[group_id] = replace(self._group(group_id), state=state)

    def delete_conversation(self, group_id: str) -> None:
        self._group(group_id)
        del self._groups[group_id]
        del self._members[group_id]


class InMemoryMessageSender:
    """Records sent templates instead of delivering them."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []

    def send_template(self, content_sid: str, from_: str, to: str) -> str:
        self.sent.append((content_sid, from_, to))
        return _sid("SM")


class InMemoryFlexStore:
    """Records interactions and invites; routing targets are fixed at construction."""

    def __init__(
        self,
        workers: list[RoutingTarget] | None = None,
        queues: list[RoutingTarget] | None = None,
    ) -> None:
        self.workers = list(workers or [])
        self.queues = list(queues or [])
        self.interactions: dict[str, tuple[str, dict]] = {}
        self.invites: list[tuple[str, str, dict]] = []

    def create_interaction(self, conversation_sid: str, routing: dict) -> Interaction:
        interaction = Interaction(sid=_sid("KD"), channel_sid=_sid("UO"))
        self.interactions[interaction.sid] = (conversation_sid, routing)
        return interaction

    def create_invite(self, interaction_sid: str, channel_sid: str, routing: dict) -> str:
        if interaction_sid not in self.interactions:
            raise NotFound(f"Interaction {interaction_sid} not found", status=404)
        self.invites.append((interaction_sid, channel_sid, routing))
        return _sid("KG")

    def list_workers(self, limit: int) -> list[RoutingTarget]:
        return self.workers[:limit]

    def list_queues(self, limit: int) -> list[RoutingTarget]:
        return self.queues[:limit]

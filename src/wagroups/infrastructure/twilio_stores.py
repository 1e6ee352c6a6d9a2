"""Twilio implementations of the stores: Sync maps for the directory, Conversations for groups,
Flex interactions and TaskRouter for agent hand-off.

Every TwilioRestException is translated into the store error taxonomy so the
application layer never sees SDK types.
"""

import json
import logging
from collections.abc import Callable
from datetime import datetime
from typing import TypeVar

from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client

from wagroups.application.dto import DirectoryItem, Interaction, RoutingTarget
from wagroups.domain import Conflict, Group, GroupMember, NotFound, StoreError

logger = logging.getLogger(__name__)

# Sync returns this code when an item key is already taken.
SYNC_ITEM_ALREADY_EXISTS = 54305

T = TypeVar("T")


def translate_error(error: TwilioRestException) -> StoreError:
    detail = error.msg or str(error)
    if error.status == 409 or error.code == SYNC_ITEM_ALREADY_EXISTS:
        return Conflict(detail, code=error.code, status=error.status)
    if error.status == 404:
        return NotFound(detail, code=error.code, status=error.status)
    return StoreError(detail, code=error.code, status=error.status)


def _call(fn: Callable[[], T]) -> T:
    try:
        return fn()
    except TwilioRestException as e:
        raise translate_error(e) from e


def _parse_attributes(raw, owner: str) -> dict:
    if not raw:
        return {}
    if isinstance(raw, dict):
        return raw
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Could not parse attributes for %s: %r", owner, raw)
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _iso_z(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")


def create_client(account_sid: str, auth_token: str) -> Client:
    return Client(account_sid, auth_token)


class TwilioSyncDirectoryStore:
    """Directory maps stored as Twilio Sync maps in one Sync service."""

    def __init__(self, client: Client, service_sid: str) -> None:
        self._service = client.sync.v1.services(service_sid)

    def fetch_map(self, name: str) -> str:
        sync_map = _call(lambda: self._service.sync_maps(name).fetch())
        logger.info("Sync map %r (SID: %s) found.", name, sync_map.sid)
        return sync_map.sid

    def create_map(self, name: str) -> str:
        sync_map = _call(lambda: self._service.sync_maps.create(unique_name=name, ttl=0))
        logger.info("Sync map %r (SID: %s) created.", name, sync_map.sid)
        return sync_map.sid

    def create_item(self, map_name: str, key: str, data: dict) -> DirectoryItem:
        items = self._service.sync_maps(map_name).sync_map_items
        item = _call(lambda: items.create(key=key, data=data))
        return DirectoryItem(key=item.key, data=item.data)

    def fetch_item(self, map_name: str, key: str) -> DirectoryItem:
        item = _call(lambda: self._service.sync_maps(map_name).sync_map_items(key).fetch())
        return DirectoryItem(key=item.key, data=item.data)

    def update_item(self, map_name: str, key: str, data: dict) -> DirectoryItem:
        item = _call(
            lambda: self._service.sync_maps(map_name).sync_map_items(key).update(data=data)
        )
        return DirectoryItem(key=item.key, data=item.data)

    def delete_item(self, map_name: str, key: str) -> None:
        _call(lambda: self._service.sync_maps(map_name).sync_map_items(key).delete())

    def list_items(self, map_name: str, page_size: int) -> list[DirectoryItem]:
        items = self._service.sync_maps(map_name).sync_map_items
        found = _call(lambda: items.list(page_size=page_size, limit=page_size))
        return [DirectoryItem(key=item.key, data=item.data) for item in found]


def _to_member(participant) -> GroupMember:
    binding = participant.messaging_binding or {}
    return GroupMember(
        sid=participant.sid,
        identity=participant.identity or None,
        address=binding.get("address") or None,
        proxy_address=binding.get("proxy_address") or None,
        attributes=_parse_attributes(participant.attributes, participant.sid),
    )


def _to_group(conversation) -> Group:
    return Group(
        sid=conversation.sid,
        friendly_name=conversation.friendly_name,
        attributes=_parse_attributes(conversation.attributes, conversation.sid),
        state=conversation.state,
        date_created=conversation.date_created,
        date_updated=conversation.date_updated,
    )


class TwilioConversationStore:
    """Group conversations in Twilio Conversations (a given service, or the default one)."""

    def __init__(self, client: Client, service_sid: str | None = None) -> None:
        v1 = client.conversations.v1
        self._conversations = v1.services(service_sid).conversations if service_sid else v1.conversations

    def create_participant(
        self,
        group_id: str,
        *,
        identity: str | None = None,
        address: str | None = None,
        proxy_address: str | None = None,
        friendly_name: str | None = None,
    ) -> GroupMember:
        participants = self._conversations(group_id).participants
        attributes = json.dumps({"friendlyName": friendly_name}) if friendly_name else None
        if identity is not None:
            kwargs = {"identity": identity}
        else:
            kwargs = {
                "messaging_binding_address": address,
                "messaging_binding_proxy_address": proxy_address,
            }
        if attributes:
            kwargs["attributes"] = attributes
        participant = _call(lambda: participants.create(**kwargs))
        return _to_member(participant)

    def list_participants(self, group_id: str) -> list[GroupMember]:
        participants = _call(lambda: self._conversations(group_id).participants.list())
        return [_to_member(p) for p in participants]

    def fetch_participant(self, group_id: str, participant_sid: str) -> GroupMember:
        return _to_member(
            _call(lambda: self._conversations(group_id).participants(participant_sid).fetch())
        )

    def remove_participant(self, group_id: str, participant_sid: str) -> None:
        _call(lambda: self._conversations(group_id).participants(participant_sid).delete())

    def create_conversation(self, friendly_name: str, attributes: dict) -> Group:
        conversation = _call(
            lambda: self._conversations.create(
                friendly_name=friendly_name, attributes=json.dumps(attributes)
            )
        )
        return _to_group(conversation)

    def fetch_conversation(self, group_id: str) -> Group:
        return _to_group(_call(lambda: self._conversations(group_id).fetch()))

    def list_conversations(
        self, start_date: datetime, end_date: datetime, limit: int
    ) -> list[Group]:
        conversations = _call(
            lambda: self._conversations.list(
                start_date=_iso_z(start_date), end_date=_iso_z(end_date), limit=limit
            )
        )
        return [_to_group(c) for c in conversations]

    def update_conversation(
        self, group_id: str, friendly_name: str, attributes: dict
    ) -> Group:
        conversation = _call(
            lambda: self._conversations(group_id).update(
                friendly_name=friendly_name, attributes=json.dumps(attributes)
            )
        )
        return _to_group(conversation)

    def delete_conversation(self, group_id: str) -> None:
        _call(lambda: self._conversations(group_id).delete())


class TwilioMessageSender:
    """Sends WhatsApp content templates through the Messages API."""

    def __init__(self, client: Client) -> None:
        self._client = client

    def send_template(self, content_sid: str, from_: str, to: str) -> str:
        message = _call(
            lambda: self._client.messages.create(content_sid=content_sid, from_=from_, to=to)
        )
        return message.sid


def _to_target(resource) -> RoutingTarget:
    return RoutingTarget(sid=resource.sid, friendly_name=resource.friendly_name or resource.sid)


class TwilioFlexStore:
    """Flex interactions bound to WhatsApp conversations, routed through one TaskRouter workspace."""

    def __init__(self, client: Client, workspace_sid: str) -> None:
        self._interactions = client.flex_api.v1.interaction
        self._workspace = client.taskrouter.v1.workspaces(workspace_sid)

    def _channel_sid(self, interaction) -> str | None:
        channel = interaction.channel or {}
        if channel.get("sid"):
            return channel["sid"]
        channels = _call(lambda: self._interactions(interaction.sid).channels.list(limit=1))
        return channels[0].sid if channels else None

    def create_interaction(self, conversation_sid: str, routing: dict) -> Interaction:
        interaction = _call(
            lambda: self._interactions.create(
                channel={
                    "type": "whatsapp",
                    "initiated_by": "customer",
                    "properties": {"media_channel_sid": conversation_sid},
                },
                routing={"properties": routing},
            )
        )
        logger.info("Flex interaction %s created for %s.", interaction.sid, conversation_sid)
        return Interaction(sid=interaction.sid, channel_sid=self._channel_sid(interaction))

    def create_invite(self, interaction_sid: str, channel_sid: str, routing: dict) -> str:
        invites = self._interactions(interaction_sid).channels(channel_sid).invites
        invite = _call(lambda: invites.create(routing={"properties": routing}))
        return invite.sid

    def list_workers(self, limit: int) -> list[RoutingTarget]:
        return [_to_target(w) for w in _call(lambda: self._workspace.workers.list(limit=limit))]

    def list_queues(self, limit: int) -> list[RoutingTarget]:
        return [_to_target(q) for q in _call(lambda: self._workspace.task_queues.list(limit=limit))]

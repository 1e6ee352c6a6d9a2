"""Tests for the Twilio adapters with a mocked SDK client (no network)."""

import json
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from twilio.base.exceptions import TwilioRestException

from wagroups.application import ContactDirectory
from wagroups.domain import Conflict, DirectoryError, NotFound, StoreError
from wagroups.infrastructure import (
    TwilioConversationStore,
    TwilioFlexStore,
    TwilioMessageSender,
    TwilioSyncDirectoryStore,
)
from wagroups.infrastructure.twilio_stores import translate_error


def _rest_error(status, code=None, msg="boom"):
    return TwilioRestException(status, "https://sync.twilio.com/v1/x", msg=msg, code=code)


def test_translate_error_maps_status_and_code():
    assert isinstance(translate_error(_rest_error(409)), Conflict)
    assert isinstance(translate_error(_rest_error(400, code=54305)), Conflict)
    assert isinstance(translate_error(_rest_error(404)), NotFound)
    other = translate_error(_rest_error(500, code=20500, msg="Internal"))
    assert type(other) is StoreError
    assert other.detail == "Internal"
    assert other.code == 20500
    assert other.status == 500


@pytest.fixture
def sync_service():
    client = MagicMock()
    service = client.sync.v1.services.return_value
    return client, service


def test_create_item_then_conflict_falls_back_to_update(sync_service):
    client, service = sync_service
    items = service.sync_maps.return_value.sync_map_items
    items.create.side_effect = _rest_error(409, code=54305, msg="Item already exists")
    items.return_value.update.return_value = SimpleNamespace(
        key="whatsapp:+15551234567", data={"name": "Ana B", "team": None}
    )

    directory = ContactDirectory(TwilioSyncDirectoryStore(client, "IS123"), "contacts")
    saved = directory.upsert_contact("Ana B", "+15551234567")

    client.sync.v1.services.assert_called_with("IS123")
    items.create.assert_called_once_with(
        key="whatsapp:+15551234567", data={"name": "Ana B", "team": None}
    )
    items.assert_called_with("whatsapp:+15551234567")
    items.return_value.update.assert_called_once_with(data={"name": "Ana B", "team": None})
    assert saved.created is False
    assert saved.contact.name == "Ana B"


def test_missing_map_is_created(sync_service):
    client, service = sync_service
    service.sync_maps.return_value.fetch.side_effect = _rest_error(404)
    service.sync_maps.create.return_value = SimpleNamespace(sid="MP1")
    service.sync_maps.return_value.sync_map_items.list.return_value = []

    directory = ContactDirectory(TwilioSyncDirectoryStore(client, "IS123"), "contacts")
    assert directory.list_contacts() == []
    service.sync_maps.create.assert_called_once_with(unique_name="contacts", ttl=0)
    service.sync_maps.return_value.sync_map_items.list.assert_called_once_with(
        page_size=1000, limit=1000
    )


def test_delete_missing_item_raises_directory_error(sync_service):
    client, service = sync_service
    service.sync_maps.return_value.sync_map_items.return_value.delete.side_effect = _rest_error(
        404, code=20404, msg="The requested resource was not found"
    )
    directory = ContactDirectory(TwilioSyncDirectoryStore(client, "IS123"), "contacts")
    with pytest.raises(DirectoryError, match="not found"):
        directory.delete_contact("whatsapp:+15551234567")


def test_create_participant_with_messaging_binding():
    client = MagicMock()
    conversations = client.conversations.v1.conversations
    participants = conversations.return_value.participants
    participants.create.return_value = SimpleNamespace(
        sid="MB1",
        identity=None,
        messaging_binding={"address": "whatsapp:+15551234567", "proxy_address": "whatsapp:+15550009999"},
        attributes='{"friendlyName": "Ana"}',
    )

    store = TwilioConversationStore(client)
    member = store.create_participant(
        "CH1",
        address="whatsapp:+15551234567",
        proxy_address="whatsapp:+15550009999",
        friendly_name="Ana",
    )

    conversations.assert_called_with("CH1")
    participants.create.assert_called_once_with(
        messaging_binding_address="whatsapp:+15551234567",
        messaging_binding_proxy_address="whatsapp:+15550009999",
        attributes=json.dumps({"friendlyName": "Ana"}),
    )
    assert member.address == "whatsapp:+15551234567"
    assert member.proxy_address == "whatsapp:+15550009999"
    assert member.attributes == {"friendlyName": "Ana"}


def test_create_participant_with_identity_uses_service_scope():
    client = MagicMock()
    conversations = client.conversations.v1.services.return_value.conversations
    participants = conversations.return_value.participants
    participants.create.return_value = SimpleNamespace(
        sid="MB2", identity="agent7", messaging_binding=None, attributes="{}"
    )

    store = TwilioConversationStore(client, "IS999")
    member = store.create_participant("CH1", identity="agent7")

    client.conversations.v1.services.assert_called_with("IS999")
    participants.create.assert_called_once_with(identity="agent7")
    assert member.identity == "agent7"
    assert member.address is None


def test_create_participant_error_is_translated():
    client = MagicMock()
    participants = client.conversations.v1.conversations.return_value.participants
    participants.create.side_effect = _rest_error(409, code=50416, msg="Participant already exists")
    with pytest.raises(Conflict, match="already exists"):
        TwilioConversationStore(client).create_participant("CH1", identity="agent7")


def test_list_conversations_formats_dates_and_parses_attributes():
    client = MagicMock()
    conversations = client.conversations.v1.conversations
    created = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
    conversations.list.return_value = [
        SimpleNamespace(
            sid="CH1",
            friendly_name="Launch",
            attributes='{"description": "x"}',
            state="active",
            date_created=created,
            date_updated=created,
        ),
        SimpleNamespace(
            sid="CH2",
            friendly_name="Broken",
            attributes="not json",
            state=None,
            date_created=created,
            date_updated=created,
        ),
    ]

    groups = TwilioConversationStore(client).list_conversations(
        datetime(2025, 1, 1, tzinfo=timezone.utc),
        datetime(2025, 3, 31, 23, 59, 59, tzinfo=timezone.utc),
        1000,
    )

    conversations.list.assert_called_once_with(
        start_date="2025-01-01T00:00:00Z", end_date="2025-03-31T23:59:59Z", limit=1000
    )
    assert groups[0].attributes == {"description": "x"}
    assert groups[1].attributes == {}
    assert groups[1].state is None


def test_send_template():
    client = MagicMock()
    client.messages.create.return_value = SimpleNamespace(sid="SM1")
    sid = TwilioMessageSender(client).send_template("HX1", "whatsapp:+1555", "whatsapp:+1666")
    assert sid == "SM1"
    client.messages.create.assert_called_once_with(
        content_sid="HX1", from_="whatsapp:+1555", to="whatsapp:+1666"
    )


def test_fetch_item_and_participant():
    client = MagicMock()
    items = client.sync.v1.services.return_value.sync_maps.return_value.sync_map_items
    items.return_value.fetch.return_value = SimpleNamespace(
        key="whatsapp:+15551234567", data={"name": "Ana"}
    )
    contact = ContactDirectory(TwilioSyncDirectoryStore(client, "IS123"), "contacts").find_contact(
        "whatsapp:+15551234567"
    )
    items.assert_called_with("whatsapp:+15551234567")
    assert contact.name == "Ana"

    participants = client.conversations.v1.conversations.return_value.participants
    participants.return_value.fetch.return_value = SimpleNamespace(
        sid="MB1",
        identity=None,
        messaging_binding={"address": "whatsapp:+15551234567"},
        attributes='{"friendlyName": "Ana P"}',
    )
    member = TwilioConversationStore(client).fetch_participant("CH1", "MB1")
    participants.assert_called_with("MB1")
    assert member.attributes == {"friendlyName": "Ana P"}


def test_missing_sync_item_is_not_a_contact():
    client = MagicMock()
    items = client.sync.v1.services.return_value.sync_maps.return_value.sync_map_items
    items.return_value.fetch.side_effect = _rest_error(404, code=20404, msg="Not found")
    directory = ContactDirectory(TwilioSyncDirectoryStore(client, "IS123"), "contacts")
    assert directory.find_contact("whatsapp:+15551234567") is None


def test_flex_interaction_and_invite():
    client = MagicMock()
    interactions = client.flex_api.v1.interaction
    interactions.create.return_value = SimpleNamespace(sid="KD1", channel={})
    interactions.return_value.channels.list.return_value = [SimpleNamespace(sid="UO1")]
    invites = interactions.return_value.channels.return_value.invites
    invites.create.return_value = SimpleNamespace(sid="KG1")

    store = TwilioFlexStore(client, "WS1")
    routing = {"workspace_sid": "WS1", "task_channel_unique_name": "chat", "attributes": {}}
    interaction = store.create_interaction("CH1", routing)

    interactions.create.assert_called_once_with(
        channel={
            "type": "whatsapp",
            "initiated_by": "customer",
            "properties": {"media_channel_sid": "CH1"},
        },
        routing={"properties": routing},
    )
    interactions.assert_called_with("KD1")
    assert interaction.sid == "KD1"
    assert interaction.channel_sid == "UO1"

    assert store.create_invite("KD1", "UO1", {"queue_sid": "WQ1"}) == "KG1"
    interactions.return_value.channels.assert_called_with("UO1")
    invites.create.assert_called_once_with(routing={"properties": {"queue_sid": "WQ1"}})


def test_flex_channel_from_interaction_skips_listing():
    client = MagicMock()
    interactions = client.flex_api.v1.interaction
    interactions.create.return_value = SimpleNamespace(sid="KD1", channel={"sid": "UO7"})
    interaction = TwilioFlexStore(client, "WS1").create_interaction("CH1", {})
    assert interaction.channel_sid == "UO7"
    interactions.return_value.channels.list.assert_not_called()


def test_list_workers_and_queues():
    client = MagicMock()
    workspace = client.taskrouter.v1.workspaces.return_value
    workspace.workers.list.return_value = [SimpleNamespace(sid="WK1", friendly_name="Ana")]
    workspace.task_queues.list.return_value = [SimpleNamespace(sid="WQ1", friendly_name=None)]

    store = TwilioFlexStore(client, "WS1")
    workers = store.list_workers(200)
    queues = store.list_queues(200)

    client.taskrouter.v1.workspaces.assert_called_with("WS1")
    workspace.workers.list.assert_called_once_with(limit=200)
    assert [(w.sid, w.friendly_name) for w in workers] == [("WK1", "Ana")]
    assert [(q.sid, q.friendly_name) for q in queues] == [("WQ1", "WQ1")]


def test_flex_error_is_translated():
    client = MagicMock()
    client.flex_api.v1.interaction.create.side_effect = _rest_error(400, code=20001, msg="Bad routing")
    with pytest.raises(StoreError, match="Bad routing"):
        TwilioFlexStore(client, "WS1").create_interaction("CH1", {})

"""Unit tests for GroupService: create with participants, list window, update, delete."""

from datetime import date, datetime, timezone

import pytest

from wagroups.application import GroupService, ParticipantInput
from wagroups.domain import NotFound, StoreError, ValidationError
from wagroups.infrastructure import InMemoryConversationStore, InMemoryMessageSender

PROXY = "+15550009999"
TEMPLATE = "HX0000000000000000000000000000000"


def _service(store=None, sender=None, template_sid=TEMPLATE):
    store = store or InMemoryConversationStore()
    sender = sender or InMemoryMessageSender()
    return store, sender, GroupService(store, sender=sender, template_sid=template_sid)


def test_create_group_adds_participants_and_notifies_whatsapp_only() -> None:
    store, sender, service = _service()
    created = service.create_group(
        "Launch",
        PROXY,
        [
            ParticipantInput("+15551234567", "Ana"),
            ParticipantInput("client:agent7"),
            ParticipantInput("bogus"),
        ],
        description="Launch coordination",
    )

    assert created.group.friendly_name == "Launch"
    assert created.group.attributes == {
        "description": "Launch coordination",
        "groupTwilioPhoneNumber": "whatsapp:+15550009999",
        "createdBy": "whatsapp_groups_manager",
    }
    assert created.participants.added == ["whatsapp:+15551234567", "client:agent7"]
    assert created.participants.skipped[0].identifier == "bogus"
    assert created.notified == ["whatsapp:+15551234567"]
    assert sender.sent == [(TEMPLATE, "whatsapp:+15550009999", "whatsapp:+15551234567")]
    assert len(store.list_participants(created.group.sid)) == 2


def test_create_group_without_template_sends_nothing() -> None:
    _, sender, service = _service(template_sid=None)
    created = service.create_group("Launch", PROXY, [ParticipantInput("+15551234567")])
    assert created.notified == []
    assert sender.sent == []


class _FailingSender(InMemoryMessageSender):
    def send_template(self, content_sid, from_, to):
        raise StoreError("Template not approved", code=63016, status=400)


def test_template_failures_are_collected() -> None:
    _, _, service = _service(sender=_FailingSender())
    created = service.create_group("Launch", PROXY, [ParticipantInput("+15551234567")])
    assert created.notified == []
    assert created.notify_errors[0].address == "whatsapp:+15551234567"
    assert created.notify_errors[0].detail == "Template not approved"


@pytest.mark.parametrize(
    "name, proxy, participants",
    [
        ("", PROXY, [ParticipantInput("+15551234567")]),
        ("Launch", "", [ParticipantInput("+15551234567")]),
        ("Launch", PROXY, []),
        ("Launch", "client:agent7", [ParticipantInput("+15551234567")]),
    ],
)
def test_create_group_validation(name, proxy, participants) -> None:
    store, _, service = _service()
    with pytest.raises(ValidationError):
        service.create_group(name, proxy, participants)
    assert store.list_conversations(
        datetime(2000, 1, 1, tzinfo=timezone.utc), datetime(2100, 1, 1, tzinfo=timezone.utc), 10
    ) == []


def test_list_groups_keeps_active_inactive_and_unset_states() -> None:
    store, _, service = _service()
    ids = {}
    for state in ("active", "inactive", None, "closed"):
        group = store.create_conversation(f"g-{state}", {})
        store.set_state(group.sid, state)
        ids[state] = group.sid

    listed = {g.sid for g in service.list_groups()}
    assert listed == {ids["active"], ids["inactive"], ids[None]}


def test_list_groups_window_excludes_older_conversations() -> None:
    store, _, service = _service()
    store.create_conversation("recent", {})
    today = datetime.now(timezone.utc).date()
    assert len(service.list_groups(start_date=today.isoformat())) == 1
    assert service.list_groups(start_date="2001-01-01", end_date="2001-01-31") == []


def test_list_groups_rejects_bad_dates() -> None:
    _, _, service = _service()
    with pytest.raises(ValidationError):
        service.list_groups(start_date="yesterday")
    with pytest.raises(ValidationError):
        service.list_groups(start_date=date(2024, 2, 1), end_date=date(2024, 1, 1))


def test_update_group_keeps_other_attributes() -> None:
    store, _, service = _service()
    created = service.create_group("Old", PROXY, [ParticipantInput("+15551234567")])
    updated = service.update_group(created.group.sid, "New", "Fresh description")
    assert updated.friendly_name == "New"
    assert updated.attributes["description"] == "Fresh description"
    assert updated.attributes["groupTwilioPhoneNumber"] == "whatsapp:+15550009999"


def test_update_group_requires_id_and_name() -> None:
    _, _, service = _service()
    with pytest.raises(ValidationError):
        service.update_group("", "Name")
    with pytest.raises(ValidationError):
        service.update_group("CH1", " ")


def test_delete_group() -> None:
    store, _, service = _service()
    created = service.create_group("Launch", PROXY, [ParticipantInput("+15551234567")])
    service.delete_group(created.group.sid)
    with pytest.raises(NotFound):
        store.fetch_conversation(created.group.sid)
    with pytest.raises(NotFound):
        service.delete_group(created.group.sid)

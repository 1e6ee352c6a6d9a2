"""Group conversations: create with initial participants, list, update, delete."""

import logging
from datetime import date, datetime, time, timedelta, timezone

from wagroups.application.dto import (
    GroupCreated,
    NotifyFailure,
    ParticipantInput,
    ParticipantsReconciled,
)
from wagroups.application.participants import ParticipantReconciler, normalize_proxy_address
from wagroups.application.ports import ConversationStore, MessageSender
from wagroups.domain import Group, StoreError, ValidationError
from wagroups.domain.identifiers import WHATSAPP_PREFIX

logger = logging.getLogger(__name__)

CREATED_BY = "whatsapp_groups_manager"
DEFAULT_WINDOW_DAYS = 90
LIST_LIMIT = 1000
# Conversations without a state are still open.
LISTED_STATES = frozenset({"active", "inactive", None})


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def _day_end(day: date) -> datetime:
    return datetime.combine(day, time(23, 59, 59), tzinfo=timezone.utc)


def _as_date(value: date | datetime | str | None) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError as e:
        raise ValidationError(f"Invalid date {value!r}; expected YYYY-MM-DD.") from e


class GroupService:
    """Group lifecycle on top of the conversation store."""

    def __init__(
        self,
        store: ConversationStore,
        *,
        sender: MessageSender | None = None,
        template_sid: str | None = None,
    ) -> None:
        self._store = store
        self._sender = sender
        self._template_sid = (template_sid or "").strip() or None
        self._reconciler = ParticipantReconciler(store, skip_existing=False)

    def create_group(
        self,
        friendly_name: str,
        proxy_address: str,
        participants: list[ParticipantInput],
        description: str | None = None,
    ) -> GroupCreated:
        """Create the conversation, add participants and send the welcome template."""
        friendly_name = (friendly_name or "").strip()
        if not friendly_name:
            raise ValidationError("Missing 'friendlyName' for the group.")
        if not (proxy_address or "").strip():
            raise ValidationError("Missing proxy address for the group.")
        if not participants:
            raise ValidationError("Missing or empty participants list.")
        proxy = normalize_proxy_address(proxy_address)

        attributes = {
            "description": description or "",
            "groupTwilioPhoneNumber": proxy,
            "createdBy": CREATED_BY,
        }
        logger.info("Creating group conversation %r.", friendly_name)
        group = self._store.create_conversation(friendly_name, attributes)
        logger.info("Group conversation created. SID: %s", group.sid)

        reconciled = self._reconciler.add_participants(group.sid, proxy, participants)
        notified, notify_errors = self._notify(proxy, reconciled)
        return GroupCreated(
            group=group,
            participants=reconciled,
            notified=notified,
            notify_errors=notify_errors,
        )

    def _notify(
        self, proxy: str, reconciled: ParticipantsReconciled
    ) -> tuple[list[str], list[NotifyFailure]]:
        if self._sender is None or self._template_sid is None:
            return [], []
        notified: list[str] = []
        failures: list[NotifyFailure] = []
        for address in reconciled.added:
            if not address.startswith(WHATSAPP_PREFIX):
                continue
            try:
                self._sender.send_template(self._template_sid, proxy, address)
            except StoreError as e:
                logger.error("Failed to send template to %s: %s", address, e.detail)
                failures.append(NotifyFailure(address=address, detail=e.detail))
                continue
            notified.append(address)
        logger.info("Template %s sent to %d participants.", self._template_sid, len(notified))
        return notified, failures

    def list_groups(
        self,
        start_date: date | datetime | str | None = None,
        end_date: date | datetime | str | None = None,
        *,
        today: date | None = None,
    ) -> list[Group]:
        """Groups created in the window (whole days, default last 90 days) that are not closed."""
        today = today or datetime.now(timezone.utc).date()
        end = _as_date(end_date) or today
        start = _as_date(start_date) or today - timedelta(days=DEFAULT_WINDOW_DAYS)
        if start > end:
            raise ValidationError("start date must not be after end date.")

        groups = self._store.list_conversations(_day_start(start), _day_end(end), LIST_LIMIT)
        listed = [g for g in groups if g.state in LISTED_STATES]
        logger.info(
            "Fetched %d conversations between %s and %s; %d listed.",
            len(groups),
            start,
            end,
            len(listed),
        )
        return listed

    def update_group(
        self, group_id: str, friendly_name: str, description: str | None = None
    ) -> Group:
        group_id = (group_id or "").strip()
        friendly_name = (friendly_name or "").strip()
        if not group_id or not friendly_name:
            raise ValidationError("Missing required parameters: group id and friendlyName.")
        attributes = dict(self._store.fetch_conversation(group_id).attributes)
        attributes["description"] = description or ""
        logger.info("Updating group %s.", group_id)
        return self._store.update_conversation(group_id, friendly_name, attributes)

    def delete_group(self, group_id: str) -> None:
        group_id = (group_id or "").strip()
        if not group_id:
            raise ValidationError("Missing group id.")
        logger.info("Deleting group %s.", group_id)
        self._store.delete_conversation(group_id)

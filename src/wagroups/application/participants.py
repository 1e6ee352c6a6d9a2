"""Adds participants to a group conversation with partial-failure semantics."""

import logging
from collections.abc import Iterable

from wagroups.application.dto import (
    FailedParticipant,
    ParticipantInput,
    ParticipantsReconciled,
    SkippedParticipant,
)
from wagroups.application.ports import ConversationStore
from wagroups.domain import (
    GroupMember,
    Normalized,
    Rejected,
    StoreError,
    ValidationError,
    bare_identifier,
    normalize,
)
from wagroups.domain.identifiers import CLIENT_PREFIX

logger = logging.getLogger(__name__)

MISSING_IDENTIFIER = "missing identifier"
ALREADY_PARTICIPANT = "already a participant"


def normalize_proxy_address(proxy_address: str) -> str:
    """Return the group's sending address as whatsapp:+E164 or raise ValidationError."""
    result = normalize(proxy_address)
    if not isinstance(result, Normalized) or result.is_chat_identity:
        raise ValidationError(
            f"Invalid proxy address {proxy_address!r}: expected a WhatsApp number as +E164."
        )
    return result.value


def _member_keys(members: Iterable[GroupMember]) -> set[str]:
    keys = set()
    for member in members:
        if member.identity:
            keys.add(bare_identifier(member.identity))
        if member.address:
            keys.add(bare_identifier(member.address))
    return keys


class ParticipantReconciler:
    """Binds a batch of participants to a group, one store call at a time.

    With skip_existing, current members are listed once per batch and any
    candidate already in the group (or added earlier in the same batch) is
    skipped instead of attempted.
    """

    def __init__(self, store: ConversationStore, *, skip_existing: bool = True) -> None:
        self._store = store
        self._skip_existing = skip_existing

    def add_participants(
        self,
        group_id: str,
        proxy_address: str,
        participants: list[ParticipantInput],
        *,
        skip_existing: bool | None = None,
    ) -> ParticipantsReconciled:
        group_id = (group_id or "").strip()
        if not group_id:
            raise ValidationError("Missing group id.")
        if not participants:
            raise ValidationError("Missing or empty participants list.")
        proxy = normalize_proxy_address(proxy_address)

        if skip_existing is None:
            skip_existing = self._skip_existing
        present: set[str] = set()
        if skip_existing:
            present = _member_keys(self.list_members(group_id))

        result = ParticipantsReconciled()
        for participant in participants:
            self._reconcile_one(group_id, proxy, participant, present, skip_existing, result)

        logger.info(
            "Group %s: %d added, %d skipped, %d errors.",
            group_id,
            len(result.added),
            len(result.skipped),
            len(result.errors),
        )
        return result

    def _reconcile_one(
        self,
        group_id: str,
        proxy: str,
        participant: ParticipantInput,
        present: set[str],
        skip_existing: bool,
        result: ParticipantsReconciled,
    ) -> None:
        raw = (participant.identifier or "").strip()
        if not raw:
            logger.warning("Participant without identifier skipped: %r", participant)
            result.skipped.append(
                SkippedParticipant(identifier=raw, reason=MISSING_IDENTIFIER, name=participant.name)
            )
            return

        normalized = normalize(raw)
        if isinstance(normalized, Rejected):
            logger.warning("Participant %r skipped: %s", raw, normalized.reason.value)
            result.skipped.append(
                SkippedParticipant(
                    identifier=raw,
                    reason=normalized.reason.value,
                    name=participant.name,
                )
            )
            return

        canonical = normalized.value
        if skip_existing and bare_identifier(canonical) in present:
            logger.info("Participant %s already in group %s. Skipping.", canonical, group_id)
            result.skipped.append(
                SkippedParticipant(identifier=raw, reason=ALREADY_PARTICIPANT, name=participant.name)
            )
            return

        display_name = (participant.name or "").strip() or None
        try:
            if normalized.is_chat_identity:
                identity = canonical[len(CLIENT_PREFIX):]
                logger.info("Adding chat identity %s to group %s.", identity, group_id)
                self._store.create_participant(
                    group_id,
                    identity=identity,
                    friendly_name=display_name or identity,
                )
            else:
                logger.info("Adding WhatsApp %s to group %s via proxy %s.", canonical, group_id, proxy)
                self._store.create_participant(
                    group_id,
                    address=canonical,
                    proxy_address=proxy,
                    friendly_name=display_name or canonical,
                )
        except StoreError as e:
            logger.error("Failed to add %s to group %s: %s", raw, group_id, e.detail)
            result.errors.append(FailedParticipant(identifier=raw, detail=e.detail, code=e.code))
            return

        result.added.append(canonical)
        present.add(bare_identifier(canonical))

    def list_members(self, group_id: str) -> list[GroupMember]:
        group_id = (group_id or "").strip()
        if not group_id:
            raise ValidationError("Missing group id.")
        return self._store.list_participants(group_id)

    def remove_participant(self, group_id: str, participant_sid: str) -> None:
        """Remove one participant. Store failures propagate."""
        group_id = (group_id or "").strip()
        participant_sid = (participant_sid or "").strip()
        if not group_id or not participant_sid:
            raise ValidationError("Missing required parameters: group id or participant sid.")
        self._store.remove_participant(group_id, participant_sid)
        logger.info("Participant %s removed from group %s.", participant_sid, group_id)

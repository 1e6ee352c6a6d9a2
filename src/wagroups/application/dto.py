"""Input and result objects for the application services."""

from dataclasses import dataclass, field

from wagroups.domain import Contact, Group


@dataclass(frozen=True)
class DirectoryItem:
    """Raw item as returned by a directory store."""

    key: str
    data: dict | None = None
    sid: str | None = None


@dataclass(frozen=True)
class ParticipantInput:
    """One participant as supplied by the caller (identifier not yet normalized)."""

    identifier: str | None = None
    name: str | None = None


@dataclass(frozen=True)
class SkippedParticipant:
    identifier: str
    reason: str
    name: str | None = None


@dataclass(frozen=True)
class FailedParticipant:
    identifier: str
    detail: str
    code: int | None = None


@dataclass(frozen=True)
class ParticipantsReconciled:
    """Disjoint partition of a participant batch, in input order."""

    added: list[str] = field(default_factory=list)
    skipped: list[SkippedParticipant] = field(default_factory=list)
    errors: list[FailedParticipant] = field(default_factory=list)


@dataclass(frozen=True)
class ContactSaved:
    contact: Contact
    created: bool


@dataclass(frozen=True)
class NotifyFailure:
    address: str
    detail: str


@dataclass(frozen=True)
class GroupCreated:
    group: Group
    participants: ParticipantsReconciled
    notified: list[str] = field(default_factory=list)
    notify_errors: list[NotifyFailure] = field(default_factory=list)


@dataclass(frozen=True)
class Interaction:
    """A Flex interaction bound to a group conversation."""

    sid: str
    channel_sid: str | None = None


@dataclass(frozen=True)
class AgentInvited:
    interaction_sid: str
    channel_sid: str | None
    invite_posted: bool = False
    already_existed: bool = False


@dataclass(frozen=True)
class RoutingTarget:
    sid: str
    friendly_name: str


@dataclass(frozen=True)
class RoutingTargets:
    workers: list[RoutingTarget] = field(default_factory=list)
    queues: list[RoutingTarget] = field(default_factory=list)

"""Application layer: use cases, ports, and DTOs. Depends only on domain."""

from wagroups.application.authors import AuthorNameResolver
from wagroups.application.contact_directory import ContactDirectory
from wagroups.application.dto import (
    AgentInvited,
    ContactSaved,
    DirectoryItem,
    FailedParticipant,
    GroupCreated,
    Interaction,
    NotifyFailure,
    ParticipantInput,
    ParticipantsReconciled,
    RoutingTarget,
    RoutingTargets,
    SkippedParticipant,
)
from wagroups.application.groups import GroupService
from wagroups.application.handoff import HandoffService
from wagroups.application.participants import ParticipantReconciler
from wagroups.application.ports import (
    ConversationStore,
    DirectoryStore,
    FlexStore,
    MessageSender,
)

__all__ = [
    "AgentInvited",
    "AuthorNameResolver",
    "ContactDirectory",
    "ContactSaved",
    "ConversationStore",
    "DirectoryItem",
    "DirectoryStore",
    "FailedParticipant",
    "FlexStore",
    "GroupCreated",
    "GroupService",
    "HandoffService",
    "Interaction",
    "MessageSender",
    "NotifyFailure",
    "ParticipantInput",
    "ParticipantReconciler",
    "ParticipantsReconciled",
    "RoutingTarget",
    "RoutingTargets",
    "SkippedParticipant",
]

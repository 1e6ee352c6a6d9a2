"""
WhatsApp groups core: clean-architecture layout.

- domain: identifier normalization, entities (Contact, Group, GroupMember), errors.
- application: use cases (ContactDirectory, ParticipantReconciler, GroupService,
  HandoffService, AuthorNameResolver), ports.
- infrastructure: adapters (in-memory stores, Twilio Sync, Conversations and Flex stores).
"""

from wagroups.application import (
    ContactDirectory,
    ContactSaved,
    GroupService,
    ParticipantInput,
    ParticipantReconciler,
    ParticipantsReconciled,
)
from wagroups.domain import (
    Contact,
    DirectoryError,
    RejectionReason,
    StoreError,
    ValidationError,
    normalize,
)
from wagroups.infrastructure import InMemoryConversationStore, InMemoryDirectoryStore

__all__ = [
    "Contact",
    "ContactDirectory",
    "ContactSaved",
    "DirectoryError",
    "GroupService",
    "InMemoryConversationStore",
    "InMemoryDirectoryStore",
    "ParticipantInput",
    "ParticipantReconciler",
    "ParticipantsReconciled",
    "RejectionReason",
    "StoreError",
    "ValidationError",
    "normalize",
]

"""Infrastructure layer: concrete implementations of application ports."""

from wagroups.infrastructure.memory_stores import (
    InMemoryConversationStore,
    InMemoryDirectoryStore,
    InMemoryFlexStore,
    InMemoryMessageSender,
)
from wagroups.infrastructure.twilio_stores import (
    TwilioConversationStore,
    TwilioFlexStore,
    TwilioMessageSender,
    TwilioSyncDirectoryStore,
    create_client,
)

__all__ = [
    "InMemoryConversationStore",
    "InMemoryDirectoryStore",
    "InMemoryFlexStore",
    "InMemoryMessageSender",
    "TwilioConversationStore",
    "TwilioFlexStore",
    "TwilioMessageSender",
    "TwilioSyncDirectoryStore",
    "create_client",
]

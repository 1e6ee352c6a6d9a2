"""Display names for message authors, used to prefix group messages."""

import logging

from wagroups.application.contact_directory import ContactDirectory
from wagroups.application.ports import ConversationStore
from wagroups.domain import StoreError, WaGroupsError
from wagroups.domain.identifiers import WHATSAPP_PREFIX

logger = logging.getLogger(__name__)


class AuthorNameResolver:
    """Resolves an author to the best name available.

    Order: the directory entry keyed by the author, then the participant's
    friendlyName attribute, identity or binding address, then the author
    itself without its whatsapp: prefix. Lookups that fail fall through.
    """

    def __init__(
        self,
        conversations: ConversationStore | None = None,
        directory: ContactDirectory | None = None,
    ) -> None:
        self._conversations = conversations
        self._directory = directory

    def display_name(
        self,
        author: str,
        conversation_sid: str | None = None,
        participant_sid: str | None = None,
    ) -> str:
        name = self._from_directory(author)
        if not name and conversation_sid and participant_sid:
            name = self._from_participant(conversation_sid, participant_sid)
        if name:
            return name
        if author.startswith(WHATSAPP_PREFIX):
            return author[len(WHATSAPP_PREFIX):]
        return author

    def _from_directory(self, author: str) -> str | None:
        if self._directory is None:
            return None
        try:
            contact = self._directory.find_contact(author)
        except WaGroupsError as e:
            logger.warning("Directory lookup for %r failed: %s", author, e.detail)
            return None
        if contact is None or not contact.name:
            return None
        logger.info("Author %r resolved from the directory.", author)
        return contact.name

    def _from_participant(self, conversation_sid: str, participant_sid: str) -> str | None:
        if self._conversations is None:
            return None
        try:
            member = self._conversations.fetch_participant(conversation_sid, participant_sid)
        except StoreError as e:
            logger.warning("Could not fetch participant %s: %s", participant_sid, e.detail)
            return None
        friendly = member.attributes.get("friendlyName")
        return (friendly if isinstance(friendly, str) else None) or member.identity or member.address

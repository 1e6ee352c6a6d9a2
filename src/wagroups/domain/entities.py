"""Domain entities: Contact, GroupMember and Group."""

from dataclasses import dataclass, field
from datetime import datetime

from wagroups.domain.identifiers import format_for_display


@dataclass(frozen=True)
class Contact:
    """
    A directory entry keyed by its canonical identifier.
    Uniqueness of key is enforced by the directory store, not here.

    name is required and non-empty for every contact written through
    ContactDirectory.upsert_contact. It is optional here only because items
    read back from the store may have been written by other clients without one.
    """

    key: str
    name: str | None = None
    team: str | None = None
    sid: str | None = None

    def to_payload(self) -> dict:
        """Shape sent to the front-end; the key is repeated as the identifier."""
        return {
            "id": self.key,
            "data": {
                "name": self.name,
                "identifier": self.key,
                "team": self.team,
                "display": format_for_display(self.key),
            },
        }


@dataclass(frozen=True)
class GroupMember:
    """A participant already bound to a group conversation."""

    sid: str
    identity: str | None = None
    address: str | None = None
    proxy_address: str | None = None
    attributes: dict = field(default_factory=dict)


@dataclass(frozen=True)
class Group:
    """A group conversation as reported by the conversation service."""

    sid: str
    friendly_name: str | None = None
    attributes: dict = field(default_factory=dict)
    state: str | None = None
    date_created: datetime | None = None
    date_updated: datetime | None = None

    def to_payload(self) -> dict:
        return {
            "sid": self.sid,
            "friendlyName": self.friendly_name,
            "attributes": self.attributes,
            "state": self.state,
            "dateCreated": self.date_created.isoformat() if self.date_created else None,
            "dateUpdated": self.date_updated.isoformat() if self.date_updated else None,
        }

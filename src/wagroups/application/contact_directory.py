"""Contact directory: list, idempotent upsert and delete, keyed by canonical identifier."""

import logging

from wagroups.application.dto import ContactSaved, DirectoryItem
from wagroups.application.ports import DirectoryStore
from wagroups.domain import (
    Conflict,
    Contact,
    DirectoryError,
    NotFound,
    Rejected,
    StoreError,
    ValidationError,
    normalize,
)

logger = logging.getLogger(__name__)

# Only the first page is read; larger directories are truncated.
LIST_PAGE_SIZE = 1000


def _item_to_contact(item: DirectoryItem) -> Contact:
    data = item.data if isinstance(item.data, dict) else {}
    return Contact(
        key=item.key,
        name=data.get("name"),
        team=data.get("team"),
        sid=item.sid,
    )


class ContactDirectory:
    """Synchronizes contacts with a key-value map. Holds no state between calls."""

    def __init__(self, store: DirectoryStore, map_name: str) -> None:
        if not (map_name or "").strip():
            raise ValueError("map_name must be non-empty")
        self._store = store
        self._map_name = map_name.strip()

    def ensure_map(self) -> None:
        """Fetch the backing map, creating it when it does not exist yet."""
        try:
            self._store.fetch_map(self._map_name)
            return
        except NotFound:
            logger.info("Directory map %r not found. Creating it.", self._map_name)
        except StoreError as e:
            raise DirectoryError.from_store_error(e) from e
        try:
            self._store.create_map(self._map_name)
        except StoreError as e:
            logger.error("Could not create directory map %r: %s", self._map_name, e.detail)
            raise DirectoryError.from_store_error(e) from e

    def list_contacts(self) -> list[Contact]:
        """Return the contacts on the first page of the directory."""
        self.ensure_map()
        try:
            items = self._store.list_items(self._map_name, LIST_PAGE_SIZE)
        except StoreError as e:
            raise DirectoryError.from_store_error(e) from e
        logger.info("Fetched %d contacts from %r.", len(items), self._map_name)
        return [_item_to_contact(item) for item in items]

    def upsert_contact(
        self, name: str, identifier: str, team: str | None = None
    ) -> ContactSaved:
        """Create the contact, or update it in place if its key already exists.

        Repeated calls with the same identifier never create a second entry;
        the latest name and team win.
        """
        name = (name or "").strip()
        identifier = (identifier or "").strip()
        if not name or not identifier:
            raise ValidationError("Missing required fields (name/identifier).")

        result = normalize(identifier)
        if isinstance(result, Rejected):
            raise ValidationError(
                f"Invalid identifier {identifier!r}: {result.reason.value}. "
                "Provide a chat identity as 'client:<id>' or a phone number as +E164."
            )
        key = result.value
        data = {"name": name, "team": (team or "").strip() or None}

        self.ensure_map()
        try:
            item = self._store.create_item(self._map_name, key, data)
            logger.info("Contact %r (%s) created.", name, key)
            return ContactSaved(contact=_item_to_contact(item), created=True)
        except Conflict:
            logger.info("Contact with key %r already exists. Updating.", key)
        except StoreError as e:
            raise DirectoryError.from_store_error(e) from e

        try:
            item = self._store.update_item(self._map_name, key, data)
        except StoreError as e:
            raise DirectoryError.from_store_error(e) from e
        logger.info("Contact %r (%s) updated.", name, key)
        return ContactSaved(contact=_item_to_contact(item), created=False)

    def delete_contact(self, key: str) -> None:
        """Remove a contact. Deleting a key that is not stored is an error."""
        key = (key or "").strip()
        if not key:
            raise ValidationError("Missing key for delete.")
        result = normalize(key)
        if isinstance(result, Rejected):
            raise ValidationError(f"Invalid key {key!r}: {result.reason.value}.")

        self.ensure_map()
        try:
            self._store.delete_item(self._map_name, result.value)
        except StoreError as e:
            logger.error("Failed to delete contact %s: %s", result.value, e.detail)
            raise DirectoryError.from_store_error(e) from e
        logger.info("Contact with key %s deleted.", result.value)

    def find_contact(self, key: str) -> Contact | None:
        """Look up one contact by identifier. None when it is not stored or cannot be a key."""
        result = normalize(key or "")
        if isinstance(result, Rejected):
            return None
        try:
            item = self._store.fetch_item(self._map_name, result.value)
        except NotFound:
            logger.info("No contact found for key %r.", result.value)
            return None
        except StoreError as e:
            raise DirectoryError.from_store_error(e) from e
        return _item_to_contact(item)

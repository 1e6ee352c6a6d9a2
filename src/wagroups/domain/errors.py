"""Error taxonomy. Every error carries a machine-readable kind and a detail string."""


class WaGroupsError(Exception):
    kind = "error"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> dict:
        return {"kind": self.kind, "detail": self.detail}


class ValidationError(WaGroupsError, ValueError):
    """Bad input; the caller has to change the request."""

    kind = "validation"


class StoreError(WaGroupsError):
    """A backing store (directory or conversation service) rejected a call."""

    kind = "store"

    def __init__(
        self,
        detail: str,
        *,
        code: int | None = None,
        status: int | None = None,
    ) -> None:
        super().__init__(detail)
        self.code = code
        self.status = status

    def to_dict(self) -> dict:
        out = super().to_dict()
        if self.code is not None:
            out["code"] = self.code
        return out


class Conflict(StoreError):
    """Item with the same key already exists. Handled internally by upserts."""

    kind = "conflict"


class NotFound(StoreError):
    kind = "not_found"


class DirectoryError(StoreError):
    """Contact directory failure surfaced to the caller."""

    kind = "directory"

    @classmethod
    def from_store_error(cls, error: StoreError) -> "DirectoryError":
        return cls(error.detail, code=error.code, status=error.status)

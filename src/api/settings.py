"""Runtime configuration read from environment variables (.env is loaded by api.main)."""

import os
from dataclasses import dataclass, field

STORE_TWILIO = "twilio"
STORE_MEMORY = "memory"

_REQUIRED_TWILIO = (
    ("ACCOUNT_SID", "account_sid"),
    ("AUTH_TOKEN", "auth_token"),
    ("SYNC_SERVICE_SID", "sync_service_sid"),
    ("SYNC_MAP_UNIQUE_NAME", "sync_map_unique_name"),
)


def _env(name: str) -> str | None:
    return (os.environ.get(name) or "").strip() or None


@dataclass(frozen=True)
class Settings:
    store: str = STORE_TWILIO
    account_sid: str | None = None
    auth_token: str | None = None
    sync_service_sid: str | None = None
    sync_map_unique_name: str | None = None
    conversations_service_sid: str | None = None
    whatsapp_template_sid: str | None = None
    taskrouter_workspace_sid: str | None = None
    taskrouter_workflow_sid: str | None = None
    allowed_origins: list[str] = field(default_factory=list)

    @classmethod
    def from_env(cls) -> "Settings":
        origins = [o.strip() for o in (os.environ.get("ALLOWED_ORIGINS") or "").split(",")]
        return cls(
            store=(_env("WAGROUPS_STORE") or STORE_TWILIO).lower(),
            account_sid=_env("ACCOUNT_SID"),
            auth_token=_env("AUTH_TOKEN"),
            sync_service_sid=_env("SYNC_SERVICE_SID"),
            sync_map_unique_name=_env("SYNC_MAP_UNIQUE_NAME"),
            conversations_service_sid=_env("CONVERSATIONS_SERVICE_SID"),
            whatsapp_template_sid=_env("WHATSAPP_TEMPLATE_SID"),
            taskrouter_workspace_sid=_env("TASKROUTER_WORKSPACE_SID"),
            taskrouter_workflow_sid=_env("TASKROUTER_WORKFLOW_SID"),
            allowed_origins=[o for o in origins if o],
        )

    def missing(self) -> list[str]:
        """Names of required variables that are unset for the selected store."""
        if self.store == STORE_MEMORY:
            return [] if self.sync_map_unique_name else ["SYNC_MAP_UNIQUE_NAME"]
        return [env_name for env_name, attr in _REQUIRED_TWILIO if not getattr(self, attr)]

    def missing_for_handoff(self) -> list[str]:
        """Like missing(), plus the TaskRouter workspace the agent hand-off routes through."""
        missing = self.missing()
        if not self.taskrouter_workspace_sid:
            missing.append("TASKROUTER_WORKSPACE_SID")
        return missing

"""
FastAPI backend: contact directory, group conversations, agent hand-off and the message-added webhook.
Run with uvicorn: uvicorn api.main:app --reload
"""

import logging
from pathlib import Path
from urllib.parse import parse_qsl

from dotenv import load_dotenv

# Load .env from repo root (when run from repo root or from Docker)
for path in (
    Path(__file__).resolve().parent.parent.parent / ".env",
    Path.cwd() / ".env",
):
    if path.exists():
        load_dotenv(path)
        break

from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from api.settings import STORE_MEMORY, Settings
from wagroups.application import (
    AgentInvited,
    AuthorNameResolver,
    ContactDirectory,
    ConversationStore,
    DirectoryStore,
    FlexStore,
    GroupService,
    HandoffService,
    MessageSender,
    ParticipantInput,
    ParticipantReconciler,
    ParticipantsReconciled,
)
from wagroups.domain import GroupMember, NotFound, ValidationError, WaGroupsError
from wagroups.domain.identifiers import format_author_body
from wagroups.infrastructure import (
    InMemoryConversationStore,
    InMemoryDirectoryStore,
    InMemoryFlexStore,
    InMemoryMessageSender,
    TwilioConversationStore,
    TwilioFlexStore,
    TwilioMessageSender,
    TwilioSyncDirectoryStore,
    create_client,
)

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)
logger = logging.getLogger(__name__)

# Both spellings are delivered depending on how the webhook was configured.
MESSAGE_ADDED_EVENTS = frozenset({"onMessageAdd", "onMessageAdded"})


@dataclass
class Stores:
    directory: DirectoryStore
    conversations: ConversationStore
    sender: MessageSender
    flex: FlexStore | None = None


def _build_stores(settings: Settings) -> Stores:
    if settings.store == STORE_MEMORY:
        logger.info("Using in-memory stores.")
        return Stores(
            directory=InMemoryDirectoryStore(),
            conversations=InMemoryConversationStore(),
            sender=InMemoryMessageSender(),
            flex=InMemoryFlexStore(),
        )
    client = create_client(settings.account_sid, settings.auth_token)
    return Stores(
        directory=TwilioSyncDirectoryStore(client, settings.sync_service_sid),
        conversations=TwilioConversationStore(client, settings.conversations_service_sid),
        sender=TwilioMessageSender(client),
        flex=(
            TwilioFlexStore(client, settings.taskrouter_workspace_sid)
            if settings.taskrouter_workspace_sid
            else None
        ),
    )


def _require_config(missing: list[str]) -> None:
    if missing:
        detail = f"Missing environment variable(s): {', '.join(missing)}."
        logger.error("Configuration error: %s", detail)
        raise HTTPException(
            status_code=500,
            detail={"message": "Server configuration error", "detail": detail},
        )


def _get_stores(app: FastAPI) -> Stores:
    settings: Settings = app.state.settings
    _require_config(settings.missing())
    if getattr(app.state, "stores", None) is None:
        app.state.stores = _build_stores(settings)
    return app.state.stores


def get_directory(request: Request) -> ContactDirectory:
    stores = _get_stores(request.app)
    return ContactDirectory(stores.directory, request.app.state.settings.sync_map_unique_name)


def get_reconciler(request: Request) -> ParticipantReconciler:
    return ParticipantReconciler(_get_stores(request.app).conversations)


def get_group_service(request: Request) -> GroupService:
    stores = _get_stores(request.app)
    return GroupService(
        stores.conversations,
        sender=stores.sender,
        template_sid=request.app.state.settings.whatsapp_template_sid,
    )


def get_handoff_service(request: Request) -> HandoffService:
    settings: Settings = request.app.state.settings
    _require_config(settings.missing_for_handoff())
    stores = _get_stores(request.app)
    return HandoffService(
        stores.flex,
        stores.conversations,
        workspace_sid=settings.taskrouter_workspace_sid,
        workflow_sid=settings.taskrouter_workflow_sid,
    )


def get_author_resolver(request: Request) -> AuthorNameResolver:
    settings: Settings = request.app.state.settings
    if settings.missing():
        logger.info("Stores not configured; author names fall back to the address.")
        return AuthorNameResolver()
    stores = _get_stores(request.app)
    return AuthorNameResolver(
        stores.conversations,
        ContactDirectory(stores.directory, settings.sync_map_unique_name),
    )


def _status_for(error: WaGroupsError) -> int:
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, NotFound) or getattr(error, "status", None) == 404:
        return 404
    return 502


async def _handle_wagroups_error(request: Request, exc: WaGroupsError) -> JSONResponse:
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": exc.detail, **exc.to_dict()},
    )


# --- Request bodies ---


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ContactBody(_Body):
    name: str | None = None
    identifier: str | None = None
    team: str | None = None


class ParticipantBody(_Body):
    identifier: str | None = None
    id: str | None = None
    address: str | None = None
    name: str | None = None

    def to_input(self) -> ParticipantInput:
        return ParticipantInput(
            identifier=self.identifier or self.id or self.address,
            name=self.name,
        )


class AddParticipantsBody(_Body):
    proxy_address: str | None = Field(None, alias="twilioPhoneNumber")
    participants: list[ParticipantBody] = Field(default_factory=list)
    skip_existing: bool = Field(True, alias="skipExisting")


class CreateGroupBody(_Body):
    friendly_name: str | None = Field(None, alias="friendlyName")
    description: str | None = None
    proxy_address: str | None = Field(None, alias="twilioPhoneNumber")
    participants: list[ParticipantBody] = Field(default_factory=list)


class UpdateGroupBody(_Body):
    friendly_name: str | None = Field(None, alias="friendlyName")
    description: str | None = None


class AgentInviteBody(_Body):
    queue_sid: str | None = Field(None, alias="queueSid")
    worker_sid: str | None = Field(None, alias="workerSid")
    workflow_sid: str | None = Field(None, alias="workflowSid")
    invite_attributes: dict | None = Field(None, alias="inviteAttributes")


def _reconciled_payload(result: ParticipantsReconciled) -> dict:
    return {
        "added": list(result.added),
        "skipped": [
            {"identifier": s.identifier, "name": s.name, "reason": s.reason}
            for s in result.skipped
        ],
        "errors": [
            {"identifier": e.identifier, "error": e.detail, "code": e.code}
            for e in result.errors
        ],
    }


def _member_payload(member: GroupMember) -> dict:
    return {
        "sid": member.sid,
        "identity": member.identity,
        "address": member.address,
        "proxyAddress": member.proxy_address,
        "attributes": member.attributes,
    }


def _invite_payload(invited: AgentInvited) -> dict:
    return {
        "success": invited.channel_sid is not None,
        "interactionSid": invited.interaction_sid,
        "channelSid": invited.channel_sid,
        "invitePosted": invited.invite_posted,
        "alreadyExisted": invited.already_existed,
    }


async def _webhook_payload(request: Request) -> dict:
    """Event fields from a JSON or form-encoded body. Unreadable bodies yield {}."""
    try:
        if request.headers.get("content-type", "").startswith("application/json"):
            payload = await request.json()
        else:
            payload = dict(parse_qsl((await request.body()).decode("utf-8")))
    except ValueError:
        logger.warning("Could not parse webhook body.")
        return {}
    return payload if isinstance(payload, dict) else {}


def _text(payload: dict, name: str) -> str | None:
    value = payload.get(name)
    return value if isinstance(value, str) and value else None


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        missing = settings.missing()
        if missing:
            logger.warning("Missing environment variable(s): %s", ", ".join(missing))
        else:
            logger.info("Required environment variables are present.")
        yield

    app = FastAPI(title="WhatsApp Groups API", lifespan=lifespan)
    app.state.settings = settings
    app.state.stores = None
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    app.add_exception_handler(WaGroupsError, _handle_wagroups_error)

    # --- REST: health ---

    @app.get("/health")
    def health():
        return {"status": "ok"}

    # --- REST: contacts ---

    @app.get("/contacts")
    def list_contacts(request: Request):
        contacts = get_directory(request).list_contacts()
        return {"contacts": [c.to_payload() for c in contacts]}

    @app.post("/contacts")
    def upsert_contact(body: ContactBody, request: Request):
        saved = get_directory(request).upsert_contact(body.name, body.identifier, body.team)
        verb = "created" if saved.created else "updated"
        return JSONResponse(
            content={
                "message": f"Contact {verb} successfully",
                "contact": saved.contact.to_payload(),
            },
            status_code=201 if saved.created else 200,
        )

    @app.delete("/contacts/{key:path}")
    def delete_contact(key: str, request: Request):
        get_directory(request).delete_contact(key)
        return {"message": "Contact deleted successfully"}

    # --- REST: groups ---

    @app.get("/groups")
    def list_groups(
        request: Request,
        startDate: str | None = None,  # noqa: N803
        endDate: str | None = None,  # noqa: N803
    ):
        groups = get_group_service(request).list_groups(startDate, endDate)
        return {"success": True, "conversations": [g.to_payload() for g in groups]}

    @app.post("/groups")
    def create_group(body: CreateGroupBody, request: Request):
        created = get_group_service(request).create_group(
            body.friendly_name,
            body.proxy_address,
            [p.to_input() for p in body.participants],
            description=body.description,
        )
        return JSONResponse(
            content={
                "success": True,
                "message": "Group conversation created successfully.",
                "conversationSid": created.group.sid,
                "friendlyName": created.group.friendly_name,
                "attributes": created.group.attributes,
                **_reconciled_payload(created.participants),
                "notified": created.notified,
                "notifyErrors": [
                    {"address": f.address, "error": f.detail} for f in created.notify_errors
                ],
            },
            status_code=201,
        )

    @app.patch("/groups/{group_id}")
    def update_group(group_id: str, body: UpdateGroupBody, request: Request):
        group = get_group_service(request).update_group(
            group_id, body.friendly_name, body.description
        )
        return {
            "success": True,
            "message": "Group details updated successfully.",
            "conversation": group.to_payload(),
        }

    @app.delete("/groups/{group_id}")
    def delete_group(group_id: str, request: Request):
        get_group_service(request).delete_group(group_id)
        return {"success": True, "message": "Group deleted successfully."}

    # --- REST: participants ---

    @app.get("/groups/{group_id}/participants")
    def list_participants(group_id: str, request: Request):
        members = get_reconciler(request).list_members(group_id)
        return {"participants": [_member_payload(m) for m in members]}

    @app.post("/groups/{group_id}/participants")
    def add_participants(group_id: str, body: AddParticipantsBody, request: Request):
        result = get_reconciler(request).add_participants(
            group_id,
            body.proxy_address,
            [p.to_input() for p in body.participants],
            skip_existing=body.skip_existing,
        )
        return {
            "success": True,
            "message": "Add participants request processed.",
            **_reconciled_payload(result),
        }

    @app.delete("/groups/{group_id}/participants/{participant_sid}")
    def remove_participant(group_id: str, participant_sid: str, request: Request):
        get_reconciler(request).remove_participant(group_id, participant_sid)
        return {
            "success": True,
            "message": f"Participant {participant_sid} removed from conversation {group_id}.",
        }

    # --- REST: agent hand-off ---

    @app.post("/groups/{group_id}/agent-invite")
    def invite_agent(group_id: str, body: AgentInviteBody, request: Request):
        invited = get_handoff_service(request).invite_agent(
            group_id,
            queue_sid=body.queue_sid,
            worker_sid=body.worker_sid,
            workflow_sid=body.workflow_sid,
            invite_attributes=body.invite_attributes,
        )
        content = _invite_payload(invited)
        if invited.channel_sid is None:
            content["message"] = "Channel not ready yet. Retry after a short delay."
            return JSONResponse(content=content, status_code=202)
        return JSONResponse(content=content, status_code=200 if invited.already_existed else 201)

    @app.get("/routing-targets")
    def list_routing_targets(request: Request):
        targets = get_handoff_service(request).list_routing_targets()
        return {
            "success": True,
            "workers": [{"sid": w.sid, "friendlyName": w.friendly_name} for w in targets.workers],
            "queues": [{"sid": q.sid, "friendlyName": q.friendly_name} for q in targets.queues],
        }

    # --- Conversations webhook ---

    @app.post("/webhooks/message-added")
    async def message_added(request: Request):
        payload = await _webhook_payload(request)
        event_type = _text(payload, "EventType")
        if event_type not in MESSAGE_ADDED_EVENTS:
            logger.info("EventType %s is not handled.", event_type)
            return {}
        author = _text(payload, "Author")
        body = _text(payload, "Body")
        if not author or not body:
            logger.warning("Missing message body or author.")
            return {}
        display = await run_in_threadpool(
            get_author_resolver(request).display_name,
            author,
            _text(payload, "ConversationSid"),
            _text(payload, "ParticipantSid"),
        )
        formatted = format_author_body(display, body)
        logger.info("Message body rewritten with author line for %s.", author)
        return {"body": formatted}

    return app


app = create_app()

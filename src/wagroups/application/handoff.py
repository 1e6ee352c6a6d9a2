"""Agent hand-off: bind a group conversation to a Flex interaction and invite a worker or queue."""

import logging
from datetime import datetime, timezone

from wagroups.application.dto import AgentInvited, Interaction, RoutingTargets
from wagroups.application.ports import ConversationStore, FlexStore
from wagroups.domain import StoreError, ValidationError

logger = logging.getLogger(__name__)

TASK_CHANNEL = "chat"
# Conversation attribute holding the interaction bound to the group.
INTERACTION_ATTRIBUTE = "flexInteraction"
ROUTING_TARGETS_LIMIT = 200


def _optional_sid(value: str | None) -> str | None:
    value = (value or "").strip()
    if not value or value.lower() == "none":
        return None
    return value


def _stored_interaction(attributes: dict) -> Interaction | None:
    stored = attributes.get(INTERACTION_ATTRIBUTE)
    if not isinstance(stored, dict):
        return None
    if stored.get("sid") and stored.get("channelSid"):
        return Interaction(sid=stored["sid"], channel_sid=stored["channelSid"])
    return None


class HandoffService:
    def __init__(
        self,
        flex: FlexStore,
        conversations: ConversationStore,
        *,
        workspace_sid: str,
        workflow_sid: str | None = None,
    ) -> None:
        if not (workspace_sid or "").strip():
            raise ValueError("workspace_sid must be non-empty")
        self._flex = flex
        self._conversations = conversations
        self._workspace_sid = workspace_sid.strip()
        self._workflow_sid = _optional_sid(workflow_sid)

    def invite_agent(
        self,
        group_id: str,
        *,
        queue_sid: str | None = None,
        worker_sid: str | None = None,
        workflow_sid: str | None = None,
        invite_attributes: dict | None = None,
    ) -> AgentInvited:
        """Hand the group over to an agent.

        An interaction already recorded on the conversation is reused; otherwise
        one is created and recorded. When a worker or queue is given an invite
        is posted to the interaction channel, the worker taking precedence.
        """
        group_id = (group_id or "").strip()
        if not group_id:
            raise ValidationError("Missing conversation id.")
        queue_sid = _optional_sid(queue_sid)
        worker_sid = _optional_sid(worker_sid)
        workflow_sid = _optional_sid(workflow_sid) or self._workflow_sid
        extra = dict(invite_attributes or {})

        group = self._conversations.fetch_conversation(group_id)
        interaction = _stored_interaction(group.attributes)
        already_existed = interaction is not None
        if already_existed:
            logger.info("Reusing Flex interaction %s for %s.", interaction.sid, group_id)
        else:
            interaction = self._create_interaction(group, workflow_sid, worker_sid, extra)

        if not interaction.channel_sid:
            logger.warning("Interaction %s has no channel yet.", interaction.sid)
            return AgentInvited(interaction_sid=interaction.sid, channel_sid=None)

        if not (worker_sid or queue_sid):
            return AgentInvited(
                interaction_sid=interaction.sid,
                channel_sid=interaction.channel_sid,
                already_existed=already_existed,
            )

        routing = {
            "workspace_sid": self._workspace_sid,
            "task_channel_unique_name": TASK_CHANNEL,
            "attributes": {"conversationSid": group_id, **extra},
        }
        if workflow_sid:
            routing["workflow_sid"] = workflow_sid
        if worker_sid:
            routing["worker_sid"] = worker_sid
        else:
            routing["queue_sid"] = queue_sid
        self._flex.create_invite(interaction.sid, interaction.channel_sid, routing)
        logger.info(
            "Invite posted on %s to %s.", interaction.channel_sid, worker_sid or queue_sid
        )
        return AgentInvited(
            interaction_sid=interaction.sid,
            channel_sid=interaction.channel_sid,
            invite_posted=True,
            already_existed=already_existed,
        )

    def _create_interaction(self, group, workflow_sid, worker_sid, extra) -> Interaction:
        attributes = {"conversationSid": group.sid, **extra}
        if worker_sid:
            attributes["known_worker"] = worker_sid
        routing = {
            "workspace_sid": self._workspace_sid,
            "task_channel_unique_name": TASK_CHANNEL,
            "attributes": attributes,
        }
        if workflow_sid:
            routing["workflow_sid"] = workflow_sid
        interaction = self._flex.create_interaction(group.sid, routing)
        if not interaction.channel_sid:
            return interaction

        stored = {
            "sid": interaction.sid,
            "channelSid": interaction.channel_sid,
            "createdAt": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self._conversations.update_conversation(
                group.sid, group.friendly_name, {**group.attributes, INTERACTION_ATTRIBUTE: stored}
            )
        except StoreError as e:
            logger.warning(
                "Could not record interaction %s on %s: %s", interaction.sid, group.sid, e.detail
            )
        return interaction

    def list_routing_targets(self) -> RoutingTargets:
        """Workers and task queues of the workspace, first page of each."""
        return RoutingTargets(
            workers=self._flex.list_workers(ROUTING_TARGETS_LIMIT),
            queues=self._flex.list_queues(ROUTING_TARGETS_LIMIT),
        )

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Annotated, Callable, Iterable, Literal, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from booking_engine.application.exceptions import CodecError
from booking_engine.domain.entities.notification import NotificationEvent, NotificationKind

CURRENT_VERSION_PREFIX = "n2."
IDENTITY_PREFIX_LENGTH = 63  # length of a textual self-authenticating identity

SWAP_CLAIM_MARKER = "_swap_claim_"
SWAP_STATUS_MARKER = "_swap_status_"
REACTION_MARKER = "_reaction"
COMMENTER_MARKER = "commenter"
OWNER_MARKER = "owner"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecodedContext:
    subject_id: str | None = None
    actor_ref: str | None = None
    action_label: str | None = None


class _Context(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    subject_id: str | None = Field(default=None, alias="s")
    nonce: str | None = Field(default=None, alias="n")  # keeps otherwise identical events distinct

    def identity(self) -> str | None:
        return None

    def label(self) -> str | None:
        return None

    def display_label(self) -> str | None:
        return None

    def decoded(self) -> DecodedContext:
        return DecodedContext(subject_id=self.subject_id, actor_ref=self.identity(), action_label=self.label())


class OfferContext(_Context):
    kind: Literal["offer"] = Field(default="offer", alias="k")
    actor_identity: str | None = Field(default=None, alias="a")
    outcome: str | None = Field(default=None, alias="l")

    def identity(self) -> str | None:
        return self.actor_identity

    def label(self) -> str | None:
        return self.outcome


class CommentContext(_Context):
    kind: Literal["comment"] = Field(default="comment", alias="k")
    actor_identity: str | None = Field(default=None, alias="a")
    comment_id: str | None = Field(default=None, alias="l")

    def identity(self) -> str | None:
        return self.actor_identity

    def label(self) -> str | None:
        return self.comment_id


class ReactionContext(_Context):
    kind: Literal["reaction"] = Field(default="reaction", alias="k")
    actor_identity: str | None = Field(default=None, alias="a")
    emoji: str | None = Field(default=None, alias="l")

    def identity(self) -> str | None:
        return self.actor_identity

    def label(self) -> str | None:
        return self.emoji


class MessageContext(_Context):
    kind: Literal["message"] = Field(default="message", alias="k")
    sender_identity: str | None = Field(default=None, alias="a")
    message_id: str | None = Field(default=None, alias="l")

    def identity(self) -> str | None:
        return self.sender_identity

    def label(self) -> str | None:
        return self.message_id


class TaskUpdateContext(_Context):
    kind: Literal["task_update"] = Field(default="task_update", alias="k")
    actor_identity: str | None = Field(default=None, alias="a")
    update: str | None = Field(default=None, alias="l")

    def identity(self) -> str | None:
        return self.actor_identity

    def label(self) -> str | None:
        return self.update


class SwapClaimContext(_Context):
    kind: Literal["swap_claim"] = Field(default="swap_claim", alias="k")
    claimant_identity: str | None = Field(default=None, alias="a")
    claim_note: str | None = Field(default=None, alias="l")
    claimant_label: str | None = Field(default=None, exclude=True)

    def identity(self) -> str | None:
        return self.claimant_identity

    def label(self) -> str | None:
        return self.claim_note

    def display_label(self) -> str | None:
        return self.claimant_label


class SwapStatusContext(_Context):
    kind: Literal["swap_status_change"] = Field(default="swap_status_change", alias="k")
    actor_identity: str | None = Field(default=None, alias="a")
    status: str | None = Field(default=None, alias="l")
    actor_label: str | None = Field(default=None, exclude=True)

    def identity(self) -> str | None:
        return self.actor_identity

    def label(self) -> str | None:
        return self.status

    def display_label(self) -> str | None:
        return self.actor_label


NotificationContext = Annotated[
    Union[
        OfferContext,
        CommentContext,
        ReactionContext,
        MessageContext,
        TaskUpdateContext,
        SwapClaimContext,
        SwapStatusContext,
    ],
    Field(discriminator="kind"),
]

_context_adapter: TypeAdapter = TypeAdapter(NotificationContext)

_VARIANTS: dict[NotificationKind, type[_Context]] = {
    NotificationKind.offer: OfferContext,
    NotificationKind.comment: CommentContext,
    NotificationKind.reaction: ReactionContext,
    NotificationKind.message: MessageContext,
    NotificationKind.task_update: TaskUpdateContext,
    NotificationKind.swap_claim: SwapClaimContext,
    NotificationKind.swap_status_change: SwapStatusContext,
}


def encode(event: NotificationEvent, nonce: str | None = None) -> str:
    """Single writer for composite notification identifiers."""
    variant = _VARIANTS[NotificationKind(event.kind)]
    context = variant.model_validate(
        {"s": event.subject_id, "a": event.actor_ref, "l": event.action_label, "n": nonce}
    )
    payload = context.model_dump_json(by_alias=True, exclude_none=True)
    token = base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii").rstrip("=")
    return f"{CURRENT_VERSION_PREFIX}{token}"


def decode(identifier: str, kind: NotificationKind | str) -> DecodedContext:
    """
    Recover subject, actor and action label from a notification identifier.
    Never raises: unknown kinds, legacy layouts that do not match, and garbage
    all degrade to a partially (or entirely) empty result.
    """
    try:
        kind = NotificationKind(kind)
        if not isinstance(identifier, str) or not identifier:
            raise CodecError("empty identifier")
        if identifier.startswith(CURRENT_VERSION_PREFIX):
            return _decode_current(identifier[len(CURRENT_VERSION_PREFIX):], kind)
        return _LEGACY_DECODERS[kind](identifier)
    except (CodecError, ValueError, KeyError) as e:
        logger.debug("Notification id degraded to partial context", extra={"reason": str(e)})
        return DecodedContext()


def context_for(event: NotificationEvent) -> _Context:
    """
    Typed view of an event: identities and display names land in separately
    named fields, so callers never reinterpret actor_ref by kind.
    """
    decoded = decode(event.id, event.kind)
    variant = _VARIANTS[NotificationKind(event.kind)]
    data = {
        "s": decoded.subject_id or event.subject_id,
        "a": decoded.actor_ref or event.actor_ref,
        "l": decoded.action_label or event.action_label,
    }
    if variant is SwapClaimContext:
        data["claimant_label"] = event.actor_label
    elif variant is SwapStatusContext:
        data["actor_label"] = event.actor_label
    return variant.model_validate(data)


def needs_profile_lookup(context: _Context) -> bool:
    return bool(context.identity()) and not context.display_label()


def identities_to_resolve(events: Iterable[NotificationEvent]) -> list[str]:
    """Unique identities, in first-seen order, that need a profile lookup for display."""
    seen: dict[str, None] = {}
    for event in events:
        context = context_for(event)
        if needs_profile_lookup(context):
            seen.setdefault(context.identity(), None)
    return list(seen)


def display_name(context: _Context, profiles: Mapping[str, str] | None = None) -> str:
    label = context.display_label()
    if label:
        return label
    identity = context.identity()
    if not identity:
        return "Unknown"
    name = (profiles or {}).get(identity)
    if name and name.strip():
        return name
    return identity


def _decode_current(token: str, kind: NotificationKind) -> DecodedContext:
    try:
        padded = token + "=" * (-len(token) % 4)
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        context = _context_adapter.validate_json(raw)
    except (ValueError, UnicodeError, PydanticValidationError) as e:
        raise CodecError(f"unreadable {CURRENT_VERSION_PREFIX} payload: {e}")
    if context.kind != kind.value:
        raise CodecError(f"payload kind {context.kind} does not match {kind.value}")
    return context.decoded()


def _decode_swap_claim(identifier: str) -> DecodedContext:
    subject, marker, actor = identifier.partition(SWAP_CLAIM_MARKER)
    if not marker:
        raise CodecError("missing swap claim marker")
    return DecodedContext(subject_id=subject or None, actor_ref=actor or None)


def _decode_swap_status(identifier: str) -> DecodedContext:
    subject, marker, rest = identifier.partition(SWAP_STATUS_MARKER)
    if not marker:
        raise CodecError("missing swap status marker")
    status, _, actor = rest.partition("_")
    return DecodedContext(subject_id=subject or None, actor_ref=actor or None, action_label=status or None)


def _decode_reaction(identifier: str) -> DecodedContext:
    head, marker, _ = identifier.partition(REACTION_MARKER)
    if not marker or len(head) < IDENTITY_PREFIX_LENGTH:
        raise CodecError("reaction id too short for an identity prefix")
    subject = head[IDENTITY_PREFIX_LENGTH:]
    return DecodedContext(subject_id=subject or None, actor_ref=head[:IDENTITY_PREFIX_LENGTH])


def _decode_comment(identifier: str) -> DecodedContext:
    parts = identifier.split("_")
    comment_id = parts[0]
    if len(parts) >= 3 and parts[1] == COMMENTER_MARKER:
        actor = "_".join(parts[2:])
        return DecodedContext(actor_ref=actor or None, action_label=comment_id or None)
    # comment ids start with the author identity
    actor = comment_id[:IDENTITY_PREFIX_LENGTH] if len(comment_id) >= IDENTITY_PREFIX_LENGTH else None
    return DecodedContext(actor_ref=actor, action_label=comment_id or None)


def _decode_opaque(identifier: str) -> DecodedContext:
    return DecodedContext()


_LEGACY_DECODERS: dict[NotificationKind, Callable[[str], DecodedContext]] = {
    NotificationKind.swap_claim: _decode_swap_claim,
    NotificationKind.swap_status_change: _decode_swap_status,
    NotificationKind.reaction: _decode_reaction,
    NotificationKind.comment: _decode_comment,
    NotificationKind.offer: _decode_opaque,
    NotificationKind.message: _decode_opaque,
    NotificationKind.task_update: _decode_opaque,
}

"""Review, conversation and history data models.

Every model round-trips through plain dicts (``to_dict`` / ``from_dict``) so
the store layer can persist them without importing contractlens_core.
Timestamps are timezone-aware UTC datetimes, serialised as ISO-8601 strings.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

TITLE_PREVIEW_CHARS = 20


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


def _parse_time(value: str | None) -> datetime:
    if not value:
        return utcnow()
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class Language(str, Enum):
    CHINESE = "zh-Hans"
    ENGLISH = "en"

    @classmethod
    def parse(cls, value: str | Language | None) -> Language:
        if isinstance(value, Language):
            return value
        if value and value.lower().startswith("en"):
            return cls.ENGLISH
        return cls.CHINESE


class DocumentKind(str, Enum):
    PLAIN_TEXT = "TXT"
    PDF = "PDF"
    DOCX = "DOCX"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class RecordStatus(str, Enum):
    DRAFT = "draft"
    COMPLETED = "completed"


@dataclass
class LoadedDocument:
    """Plain text extracted from a contract file, with size metadata."""

    kind: DocumentKind
    text: str
    character_count: int
    estimated_token_count: int


@dataclass(frozen=True)
class ReviewOutputs:
    """The seven artifacts of one review run. Each is written by exactly one stage."""

    mermaid_flowchart: str
    contract_overview: str
    foundation_audit: str
    business_audit: str
    legal_audit: str
    detailed_findings: str
    audit_summary: str

    def to_dict(self) -> dict:
        return {
            "mermaid_flowchart": self.mermaid_flowchart,
            "contract_overview": self.contract_overview,
            "foundation_audit": self.foundation_audit,
            "business_audit": self.business_audit,
            "legal_audit": self.legal_audit,
            "detailed_findings": self.detailed_findings,
            "audit_summary": self.audit_summary,
        }

    @classmethod
    def from_dict(cls, d: dict) -> ReviewOutputs:
        return cls(
            mermaid_flowchart=d.get("mermaid_flowchart", ""),
            contract_overview=d.get("contract_overview", ""),
            foundation_audit=d.get("foundation_audit", ""),
            business_audit=d.get("business_audit", ""),
            legal_audit=d.get("legal_audit", ""),
            detailed_findings=d.get("detailed_findings", ""),
            audit_summary=d.get("audit_summary", ""),
        )


@dataclass
class ConversationMessage:
    role: Role
    content: str = ""
    thinking_content: str = ""  # assistant only
    id: str = field(default_factory=new_id)
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
            "thinking_content": self.thinking_content,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, d: dict) -> ConversationMessage:
        return cls(
            id=d.get("id") or new_id(),
            role=Role(d.get("role", Role.USER.value)),
            content=d.get("content", ""),
            thinking_content=d.get("thinking_content", ""),
            timestamp=_parse_time(d.get("timestamp")),
        )


@dataclass
class ConversationSession:
    """One chat thread. ``updated_at`` moves on every append and title change."""

    title: str = ""
    messages: list[ConversationMessage] = field(default_factory=list)
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def add_message(self, message: ConversationMessage) -> None:
        self.messages.append(message)
        self.touch()

    def remove_message(self, message_id: str) -> bool:
        for index, message in enumerate(self.messages):
            if message.id == message_id:
                del self.messages[index]
                return True
        return False

    def rename(self, title: str) -> None:
        self.title = title
        self.touch()

    def touch(self) -> None:
        self.updated_at = utcnow()

    def recent_messages(self, limit: int = 10) -> list[ConversationMessage]:
        """The last ``limit`` messages that carry content."""
        if limit <= 0:
            return []
        return [m for m in self.messages if m.content][-limit:]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "messages": [m.to_dict() for m in self.messages],
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, d: dict) -> ConversationSession:
        return cls(
            id=d.get("id") or new_id(),
            title=d.get("title", ""),
            messages=[ConversationMessage.from_dict(m) for m in d.get("messages", [])],
            created_at=_parse_time(d.get("created_at")),
            updated_at=_parse_time(d.get("updated_at")),
        )


@dataclass
class ConversationCollection:
    """All chat sessions attached to one review result. Sessions are addressed by id."""

    sessions: list[ConversationSession] = field(default_factory=list)

    def create_session(self, title: str = "") -> ConversationSession:
        session = ConversationSession(title=title)
        self.sessions.append(session)
        return session

    def delete_session(self, session_id: str) -> None:
        self.sessions = [s for s in self.sessions if s.id != session_id]

    def get(self, session_id: str) -> ConversationSession | None:
        for session in self.sessions:
            if session.id == session_id:
                return session
        return None

    def is_empty(self) -> bool:
        return not self.sessions

    def to_dict(self) -> dict:
        return {"sessions": [s.to_dict() for s in self.sessions]}

    @classmethod
    def from_dict(cls, d: dict | None) -> ConversationCollection:
        if not d:
            return cls()
        return cls(sessions=[ConversationSession.from_dict(s) for s in d.get("sessions", [])])


@dataclass
class ReviewResult:
    """Aggregated output of one review run.

    Immutable once created except for ``conversations``, which the
    conversation engine replaces wholesale when it persists.
    """

    document_name: str
    document_kind: DocumentKind
    character_count: int
    estimated_token_count: int
    outputs: ReviewOutputs
    reviewed_at: datetime = field(default_factory=utcnow)
    conversations: ConversationCollection = field(default_factory=ConversationCollection)
    id: str = field(default_factory=new_id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_name": self.document_name,
            "document_kind": self.document_kind.value,
            "character_count": self.character_count,
            "estimated_token_count": self.estimated_token_count,
            "reviewed_at": self.reviewed_at.isoformat(),
            "outputs": self.outputs.to_dict(),
            "conversations": self.conversations.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: dict) -> ReviewResult:
        return cls(
            id=d.get("id") or new_id(),
            document_name=d.get("document_name", ""),
            document_kind=DocumentKind(d.get("document_kind", DocumentKind.PLAIN_TEXT.value)),
            character_count=d.get("character_count", 0),
            estimated_token_count=d.get("estimated_token_count", 0),
            reviewed_at=_parse_time(d.get("reviewed_at")),
            outputs=ReviewOutputs.from_dict(d.get("outputs", {})),
            conversations=ConversationCollection.from_dict(d.get("conversations")),
        )


@dataclass
class HistoryRecord:
    """A review entry in the history list: a draft, or a completed review.

    ``status`` is derived from ``review_result`` so a record is completed
    exactly when a result is attached.
    """

    title: str
    review_result: ReviewResult | None = None
    contract_text: str | None = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def status(self) -> RecordStatus:
        return RecordStatus.COMPLETED if self.review_result is not None else RecordStatus.DRAFT

    def apply_review_result(self, result: ReviewResult, contract_text: str, display_title: str | None = None) -> None:
        self.review_result = result
        self.contract_text = contract_text
        self.title = display_title if display_title else result.document_name
        self.touch()

    def touch(self) -> None:
        self.updated_at = utcnow()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "status": self.status.value,
            "review_result": self.review_result.to_dict() if self.review_result else None,
            "contract_text": self.contract_text,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, d: dict) -> HistoryRecord:
        # "status" is ignored on read; it is always recomputed from review_result.
        result = d.get("review_result")
        return cls(
            id=d.get("id") or new_id(),
            title=d.get("title", ""),
            review_result=ReviewResult.from_dict(result) if result else None,
            contract_text=d.get("contract_text"),
            created_at=_parse_time(d.get("created_at")),
            updated_at=_parse_time(d.get("updated_at")),
        )


@dataclass
class RequirementTemplate:
    """A reusable block of extra review requirements."""

    name: str
    content: str
    description: str | None = None
    id: str = field(default_factory=new_id)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "content": self.content, "description": self.description}

    @classmethod
    def from_dict(cls, d: dict) -> RequirementTemplate:
        return cls(
            id=d.get("id") or new_id(),
            name=d.get("name", ""),
            content=d.get("content", ""),
            description=d.get("description"),
        )


@dataclass
class ContractParty:
    name: str
    role: str
    description: str = ""


@dataclass
class StanceOption:
    stance: str
    description: str
    key_points: list[str] = field(default_factory=list)
    pros: list[str] = field(default_factory=list)
    cons: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)


@dataclass
class StanceIdentification:
    parties: list[ContractParty]
    contract_type: str
    primary_option: StanceOption
    alternative_options: list[StanceOption] = field(default_factory=list)

    @property
    def all_options(self) -> list[StanceOption]:
        return [self.primary_option, *self.alternative_options]


def preview_title(text: str, limit: int = TITLE_PREVIEW_CHARS) -> str:
    """Session title derived from the first user message."""
    return text[:limit] + "…" if len(text) > limit else text

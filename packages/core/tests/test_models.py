"""Tests for data models and their dict round-trips."""

from datetime import datetime, timezone

from fakes import make_result
from contractlens_core.models import (
    ConversationCollection,
    ConversationMessage,
    ConversationSession,
    HistoryRecord,
    Language,
    RecordStatus,
    ReviewResult,
    Role,
    preview_title,
)


class TestPreviewTitle:
    def test_short_text_unchanged(self):
        assert preview_title("付款条件合理吗？") == "付款条件合理吗？"

    def test_exactly_twenty_characters_unchanged(self):
        assert preview_title("a" * 20) == "a" * 20

    def test_long_text_truncated_with_ellipsis(self):
        assert preview_title("a" * 21) == "a" * 20 + "…"


class TestHistoryRecordStatus:
    def test_draft_without_result(self):
        assert HistoryRecord(title="x").status == RecordStatus.DRAFT

    def test_completed_with_result(self):
        record = HistoryRecord(title="x")
        record.apply_review_result(make_result(), "text")
        assert record.status == RecordStatus.COMPLETED
        assert record.title == "foo.pdf"
        assert record.contract_text == "text"

    def test_display_title_overrides_document_name(self):
        record = HistoryRecord(title="x")
        record.apply_review_result(make_result(), "text", display_title="采购合同")
        assert record.title == "采购合同"

    def test_stored_status_ignored_on_read(self):
        record = HistoryRecord.from_dict({"id": "r1", "title": "x", "status": "completed", "review_result": None})
        assert record.status == RecordStatus.DRAFT


class TestConversationSession:
    def test_add_message_touches(self):
        session = ConversationSession(title="t")
        session.updated_at = datetime(2020, 1, 1, tzinfo=timezone.utc)
        session.add_message(ConversationMessage(role=Role.USER, content="hi"))
        assert session.updated_at.year > 2020

    def test_remove_message(self):
        session = ConversationSession()
        message = ConversationMessage(role=Role.USER, content="hi")
        session.add_message(message)
        assert session.remove_message(message.id)
        assert not session.remove_message(message.id)
        assert session.messages == []

    def test_recent_messages(self):
        session = ConversationSession()
        for i in range(8):
            session.add_message(ConversationMessage(role=Role.USER, content=str(i)))
        assert [m.content for m in session.recent_messages(6)] == ["2", "3", "4", "5", "6", "7"]
        assert session.recent_messages(0) == []

    def test_recent_messages_skip_empty(self):
        session = ConversationSession()
        session.add_message(ConversationMessage(role=Role.USER, content="问"))
        session.add_message(ConversationMessage(role=Role.ASSISTANT))
        session.add_message(ConversationMessage(role=Role.USER, content="再问"))
        assert [m.content for m in session.recent_messages(6)] == ["问", "再问"]


class TestConversationCollection:
    def test_create_get_delete(self):
        collection = ConversationCollection()
        assert collection.is_empty()
        session = collection.create_session("对话1")
        assert collection.get(session.id) is session
        collection.delete_session(session.id)
        assert collection.get(session.id) is None
        assert collection.is_empty()


def test_history_record_dict_round_trip():
    result = make_result()
    session = result.conversations.create_session("对话1")
    session.add_message(ConversationMessage(role=Role.USER, content="第一问"))
    session.add_message(ConversationMessage(role=Role.ASSISTANT, content="答", thinking_content="想"))
    record = HistoryRecord(title="foo.pdf")
    record.apply_review_result(result, "合同正文")

    restored = HistoryRecord.from_dict(record.to_dict())

    assert restored.id == record.id
    assert restored.status == RecordStatus.COMPLETED
    assert restored.updated_at == record.updated_at
    assert restored.review_result.outputs == result.outputs
    assert restored.review_result.id == result.id
    messages = restored.review_result.conversations.sessions[0].messages
    assert [(m.role, m.content, m.thinking_content) for m in messages] == [
        (Role.USER, "第一问", ""),
        (Role.ASSISTANT, "答", "想"),
    ]


def test_naive_timestamps_read_as_utc():
    result = ReviewResult.from_dict({"document_name": "a.txt", "reviewed_at": "2024-05-01T10:00:00"})
    assert result.reviewed_at.tzinfo is not None


def test_language_parse():
    assert Language.parse("en") == Language.ENGLISH
    assert Language.parse("en-US") == Language.ENGLISH
    assert Language.parse("zh-Hans") == Language.CHINESE
    assert Language.parse(None) == Language.CHINESE
    assert Language.parse(Language.ENGLISH) == Language.ENGLISH

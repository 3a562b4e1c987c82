"""Tests for prompt construction."""

from fakes import make_result
from contractlens_core import prompts
from contractlens_core.models import ConversationMessage, Language, RequirementTemplate, Role

CONTRACT = "甲方向乙方采购设备一台。"


class TestCombineRequirements:
    def test_templates_then_manual_text(self):
        templates = [
            RequirementTemplate(name="a", content=" 关注违约金 "),
            RequirementTemplate(name="b", content="关注保密"),
        ]
        assert prompts.combine_requirements(templates, "  关注付款  ") == "关注违约金\n\n关注保密\n\n关注付款"

    def test_blank_parts_dropped(self):
        templates = [RequirementTemplate(name="a", content="   ")]
        assert prompts.combine_requirements(templates, "") == ""


def test_audit_prompts_carry_contract_stance_and_requirements():
    for build in (prompts.foundation_audit, prompts.business_audit, prompts.legal_audit):
        for language in Language:
            prompt = build(CONTRACT, "作为甲方", "关注违约金", language)
            assert CONTRACT in prompt
            assert "作为甲方" in prompt
            assert "关注违约金" in prompt


def test_summary_prompt_contains_findings_verbatim():
    findings = "1. 付款条款不明确\n\n2. 违约金过高"
    zh = prompts.audit_summary(CONTRACT, "作为乙方", findings, Language.CHINESE)
    assert f"--- 详细审核意见 ---\n{findings}\n" in zh
    en = prompts.audit_summary(CONTRACT, "As Party B", findings, Language.ENGLISH)
    assert f"--- Detailed Review Findings ---\n{findings}\n" in en


def test_flowchart_and_overview_prompts_include_contract():
    for language in Language:
        assert CONTRACT in prompts.mermaid(CONTRACT, language)
        assert CONTRACT in prompts.contract_overview(CONTRACT, language)
        assert CONTRACT in prompts.identify_stance(CONTRACT, language)


class TestConversationContext:
    def test_chinese_sections_in_order(self):
        result = make_result()
        context = prompts.conversation_context(CONTRACT, result, Language.CHINESE)
        headers = [
            "--- 合同原文 ---",
            "--- 审核结果摘要 ---",
            "合同概要：",
            "基础审核：",
            "业务条款审核：",
            "法律条款审核：",
            "审核总结：",
        ]
        positions = [context.index(h) for h in headers]
        assert positions == sorted(positions)
        assert CONTRACT in context
        assert "summary" in context

    def test_english_headers(self):
        context = prompts.conversation_context(CONTRACT, make_result(), Language.ENGLISH)
        assert context.startswith("--- Original Contract ---")
        assert "--- Review Results ---" in context
        assert "Contract Overview:\noverview" in context

    def test_flowchart_not_included(self):
        context = prompts.conversation_context(CONTRACT, make_result(), Language.CHINESE)
        assert "flowchart TD" not in context

    def test_without_result_only_contract(self):
        context = prompts.conversation_context(CONTRACT, None, Language.CHINESE)
        assert "审核结果摘要" not in context
        assert CONTRACT in context


def test_conversation_messages_order():
    history = [
        ConversationMessage(role=Role.USER, content="第一问"),
        ConversationMessage(role=Role.ASSISTANT, content="第一答", thinking_content="不发送"),
    ]
    messages = prompts.conversation_messages("第二问", "ctx", history, Language.CHINESE)

    assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
    assert "ctx" in messages[0]["content"]
    assert messages[2] == {"role": "assistant", "content": "第一答"}
    assert messages[-1] == {"role": "user", "content": "第二问"}


def test_default_titles():
    assert prompts.default_session_title(2, Language.CHINESE) == "对话2"
    assert prompts.default_session_title(1, Language.ENGLISH) == "Conversation 1"
    assert prompts.default_draft_title(Language.CHINESE) == "新的审阅"
    assert prompts.default_draft_title(Language.ENGLISH) == "New Review"

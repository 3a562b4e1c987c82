"""Tests for the review orchestrator's fan-out, summary and failure handling."""

import asyncio

import pytest

from contractlens_core.config import Credentials
from contractlens_core.errors import MissingAPIKey, MissingReviewStance, ServiceError
from contractlens_core.models import DocumentKind
from contractlens_core.reviewer import ReviewOrchestrator, join_findings
from contractlens_core.stages import Stage


class StubRunner:
    """Returns a canned reply per stage; a stage listed in ``failures`` raises instead."""

    def __init__(self, replies=None, failures=None, delays=None, transport=None):
        self.replies = replies or {}
        self.failures = failures or {}
        self.delays = delays or {}
        self.transport = transport
        self.prompts = {}
        self.started = []
        self.cancelled = []
        self.summary_started_after = None

    async def run_stage(self, stage, prompt, settings, credentials, temperature=None):
        self.started.append(stage)
        self.prompts[stage] = prompt
        if stage == Stage.SUMMARY:
            self.summary_started_after = [s for s in self.prompts if s != Stage.SUMMARY]
        try:
            await asyncio.sleep(self.delays.get(stage, 0))
        except asyncio.CancelledError:
            self.cancelled.append(stage)
            raise
        if stage in self.failures:
            raise self.failures[stage]
        return self.replies.get(stage, f"{stage.value} output")


class StubTransport:
    def __init__(self, reply):
        self.reply = reply
        self.calls = []

    async def send(self, messages, *, model, temperature, settings, credentials):
        self.calls.append({"messages": messages, "model": model, "temperature": temperature})
        return self.reply


class TestJoinFindings:
    def test_fixed_order_blank_line_separated(self):
        assert join_findings("F", "B", "L") == "F\n\nB\n\nL"

    def test_blank_parts_skipped(self):
        assert join_findings("F", "  ", "L") == "F\n\nL"
        assert join_findings("", "", "") == ""


class TestPerformReview:
    @pytest.mark.asyncio
    async def test_outputs_assembled_from_every_stage(self, document, settings, credentials):
        runner = StubRunner(
            replies={
                Stage.FOUNDATION: "F",
                Stage.BUSINESS: "B",
                Stage.LEGAL: "L",
                Stage.SUMMARY: "S",
            }
        )
        result = await ReviewOrchestrator(runner).perform_review(
            document, "foo.txt", "作为甲方", "", settings, credentials
        )

        outputs = result.outputs
        assert outputs.mermaid_flowchart == "flowchart output"
        assert outputs.contract_overview == "overview output"
        assert outputs.detailed_findings == "F\n\nB\n\nL"
        assert outputs.audit_summary == "S"
        assert result.document_name == "foo.txt"
        assert result.document_kind == DocumentKind.PLAIN_TEXT
        assert result.character_count == document.character_count
        assert result.conversations.is_empty()

    @pytest.mark.asyncio
    async def test_summary_runs_last_and_receives_findings(self, document, settings, credentials):
        runner = StubRunner(replies={Stage.FOUNDATION: "F", Stage.BUSINESS: "B", Stage.LEGAL: "L"})
        await ReviewOrchestrator(runner).perform_review(document, "foo.txt", "作为甲方", "", settings, credentials)

        assert runner.started[-1] == Stage.SUMMARY
        assert set(runner.summary_started_after) == {
            Stage.FLOWCHART,
            Stage.OVERVIEW,
            Stage.FOUNDATION,
            Stage.BUSINESS,
            Stage.LEGAL,
        }
        assert "F\n\nB\n\nL" in runner.prompts[Stage.SUMMARY]

    @pytest.mark.asyncio
    async def test_independent_stages_run_concurrently(self, document, settings, credentials):
        delays = {stage: 0.05 for stage in Stage if stage != Stage.SUMMARY}
        runner = StubRunner(delays=delays)
        loop = asyncio.get_running_loop()
        started = loop.time()
        await ReviewOrchestrator(runner).perform_review(document, "foo.txt", "作为甲方", "", settings, credentials)
        assert loop.time() - started < 0.2

    @pytest.mark.asyncio
    async def test_stance_trimmed_and_default_requirements_used(self, document, settings, credentials):
        runner = StubRunner()
        await ReviewOrchestrator(runner).perform_review(
            document, "foo.txt", "  作为乙方  ", "   ", settings, credentials
        )
        prompt = runner.prompts[Stage.FOUNDATION]
        assert "「作为乙方」" in prompt
        assert "无额外审核要求" in prompt

    @pytest.mark.asyncio
    async def test_extra_requirements_passed_to_audits(self, document, settings, credentials):
        runner = StubRunner()
        await ReviewOrchestrator(runner).perform_review(
            document, "foo.txt", "作为乙方", "关注违约金", settings, credentials
        )
        for stage in (Stage.FOUNDATION, Stage.BUSINESS, Stage.LEGAL):
            assert "关注违约金" in runner.prompts[stage]

    @pytest.mark.asyncio
    async def test_blank_stance_rejected_before_any_stage(self, document, settings, credentials):
        runner = StubRunner()
        with pytest.raises(MissingReviewStance):
            await ReviewOrchestrator(runner).perform_review(document, "foo.txt", "   ", "", settings, credentials)
        assert runner.started == []

    @pytest.mark.asyncio
    async def test_missing_key_rejected_before_any_stage(self, document, settings):
        runner = StubRunner()
        with pytest.raises(MissingAPIKey):
            await ReviewOrchestrator(runner).perform_review(
                document, "foo.txt", "作为甲方", "", settings, Credentials("")
            )
        assert runner.started == []

    @pytest.mark.asyncio
    async def test_stage_failure_cancels_siblings_and_skips_summary(self, document, settings, credentials):
        error = ServiceError("「法律条款审核」阶段失败：Rate limit reached")
        delays = {Stage.FLOWCHART: 1, Stage.OVERVIEW: 1, Stage.FOUNDATION: 1, Stage.BUSINESS: 1}
        runner = StubRunner(failures={Stage.LEGAL: error}, delays=delays)

        with pytest.raises(ServiceError) as exc_info:
            await ReviewOrchestrator(runner).perform_review(
                document, "foo.txt", "作为甲方", "", settings, credentials
            )

        assert exc_info.value is error
        assert Stage.SUMMARY not in runner.started
        assert set(runner.cancelled) == {Stage.FLOWCHART, Stage.OVERVIEW, Stage.FOUNDATION, Stage.BUSINESS}

    @pytest.mark.asyncio
    async def test_cancelling_review_cancels_every_stage(self, document, settings, credentials):
        parallel = [stage for stage in Stage if stage != Stage.SUMMARY]
        runner = StubRunner(delays={stage: 1 for stage in parallel})
        task = asyncio.ensure_future(
            ReviewOrchestrator(runner).perform_review(document, "foo.txt", "作为甲方", "", settings, credentials)
        )
        await asyncio.sleep(0.01)
        assert set(runner.started) == set(parallel)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert set(runner.cancelled) == set(parallel)
        assert Stage.SUMMARY not in runner.started

    @pytest.mark.asyncio
    async def test_summary_failure_propagates(self, document, settings, credentials):
        runner = StubRunner(failures={Stage.SUMMARY: ServiceError("boom")})
        with pytest.raises(ServiceError):
            await ReviewOrchestrator(runner).perform_review(
                document, "foo.txt", "作为甲方", "", settings, credentials
            )


class TestConnectionAndStance:
    @pytest.mark.asyncio
    async def test_connection_test_uses_given_model_at_zero_temperature(self, settings, credentials):
        transport = StubTransport("连接成功")
        reply = await ReviewOrchestrator(StubRunner(transport=transport)).test_connection(
            "deepseek-reasoner", settings, credentials
        )
        assert reply == "连接成功"
        assert transport.calls[0]["model"] == "deepseek-reasoner"
        assert transport.calls[0]["temperature"] == 0.0

    @pytest.mark.asyncio
    async def test_identify_stance_uses_reasoner_model(self, document, english_settings, credentials):
        transport = StubTransport('{"contract_type": "Purchase Agreement", "options": [{"stance": "As buyer"}]}')
        stance = await ReviewOrchestrator(StubRunner(transport=transport)).identify_stance(
            document, english_settings, credentials
        )
        assert transport.calls[0]["model"] == "deepseek-reasoner"
        assert transport.calls[0]["temperature"] == 0.3
        assert stance.contract_type == "Purchase Agreement"
        assert stance.primary_option.stance == "As buyer"
        assert [p.name for p in stance.parties] == ["Party A", "Party B"]

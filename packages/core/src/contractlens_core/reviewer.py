"""Review orchestration: five independent stages, then the summary stage.

    perform_review()
        ├─ flowchart ─┐
        ├─ overview   │
        ├─ foundation ├─ run concurrently, all must succeed
        ├─ business   │
        └─ legal ─────┘
                → detailed findings = non-blank audits joined by a blank line
                → summary stage
                → ReviewResult
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from contractlens_core import prompts
from contractlens_core.errors import MissingAPIKey, MissingReviewStance
from contractlens_core.models import LoadedDocument, ReviewOutputs, ReviewResult, StanceIdentification
from contractlens_core.stages import Stage, StageRunner
from contractlens_core.stance import parse_stance_response

if TYPE_CHECKING:
    from contractlens_core.config import Credentials, Settings

logger = logging.getLogger(__name__)

CONNECTION_TEST_TEMPERATURE = 0.0
STANCE_TEMPERATURE = 0.3


def join_findings(foundation: str, business: str, legal: str) -> str:
    """Concatenate the three audits in fixed order, skipping blank ones."""
    return "\n\n".join(part for part in (foundation, business, legal) if part.strip())


class ReviewOrchestrator:
    def __init__(self, runner: StageRunner):
        self.runner = runner

    async def perform_review(
        self,
        document: LoadedDocument,
        document_name: str,
        stance: str,
        extra_requirements: str,
        settings: Settings,
        credentials: Credentials,
    ) -> ReviewResult:
        """Run every stage and return a fresh, immutable ReviewResult.

        A failing stage cancels the others and its (annotated) error is raised;
        no partial result is ever returned.
        """
        if credentials.is_empty:
            raise MissingAPIKey()
        position = stance.strip()
        if not position:
            raise MissingReviewStance()

        language = settings.language
        extra = extra_requirements.strip() or prompts.default_extra_requirements(language)
        text = document.text

        started = time.monotonic()
        fan_out = {
            Stage.FLOWCHART: prompts.mermaid(text, language),
            Stage.OVERVIEW: prompts.contract_overview(text, language),
            Stage.FOUNDATION: prompts.foundation_audit(text, position, extra, language),
            Stage.BUSINESS: prompts.business_audit(text, position, extra, language),
            Stage.LEGAL: prompts.legal_audit(text, position, extra, language),
        }
        outputs = await self._run_concurrently(fan_out, settings, credentials)

        detailed_findings = join_findings(outputs[Stage.FOUNDATION], outputs[Stage.BUSINESS], outputs[Stage.LEGAL])
        summary = await self.runner.run_stage(
            Stage.SUMMARY,
            prompts.audit_summary(text, position, detailed_findings, language),
            settings,
            credentials,
        )
        logger.info("Review of %s finished in %.1fs", document_name, time.monotonic() - started)

        return ReviewResult(
            document_name=document_name,
            document_kind=document.kind,
            character_count=document.character_count,
            estimated_token_count=document.estimated_token_count,
            outputs=ReviewOutputs(
                mermaid_flowchart=outputs[Stage.FLOWCHART],
                contract_overview=outputs[Stage.OVERVIEW],
                foundation_audit=outputs[Stage.FOUNDATION],
                business_audit=outputs[Stage.BUSINESS],
                legal_audit=outputs[Stage.LEGAL],
                detailed_findings=detailed_findings,
                audit_summary=summary,
            ),
        )

    async def test_connection(self, model: str, settings: Settings, credentials: Credentials) -> str:
        """Send one tiny request to check the key, endpoint and model. Returns the reply."""
        messages = [
            {"role": "system", "content": prompts.system_prompt(settings.language)},
            {"role": "user", "content": prompts.connection_test_prompt(settings.language)},
        ]
        return await self.runner.transport.send(
            messages,
            model=model,
            temperature=CONNECTION_TEST_TEMPERATURE,
            settings=settings,
            credentials=credentials,
        )

    async def identify_stance(
        self, document: LoadedDocument, settings: Settings, credentials: Credentials
    ) -> StanceIdentification:
        """Ask the reasoner model for parties and stance options. Best-effort."""
        messages = [
            {"role": "system", "content": prompts.system_prompt(settings.language)},
            {"role": "user", "content": prompts.identify_stance(document.text, settings.language)},
        ]
        reply = await self.runner.transport.send(
            messages,
            model=settings.reasoner_model,
            temperature=STANCE_TEMPERATURE,
            settings=settings,
            credentials=credentials,
        )
        return parse_stance_response(reply, settings.language)

    # ------------------------------------------------------------------ #
    # Helpers                                                              #
    # ------------------------------------------------------------------ #

    async def _run_concurrently(
        self, stage_prompts: dict[Stage, str], settings: Settings, credentials: Credentials
    ) -> dict[Stage, str]:
        tasks = {
            stage: asyncio.ensure_future(self.runner.run_stage(stage, prompt, settings, credentials))
            for stage, prompt in stage_prompts.items()
        }
        try:
            results = await asyncio.gather(*tasks.values())
        except BaseException:
            # First failure (or our own cancellation) wins; stop the rest before re-raising.
            for task in tasks.values():
                task.cancel()
            await asyncio.gather(*tasks.values(), return_exceptions=True)
            raise
        return dict(zip(tasks, results))

"""Review stages and the runner that executes one stage against the transport."""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import TYPE_CHECKING

from contractlens_core import prompts
from contractlens_core.errors import ReviewError, ServiceError
from contractlens_core.models import Language

if TYPE_CHECKING:
    from contractlens_core.config import Credentials, Settings
    from contractlens_core.transport import ChatTransport

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    FLOWCHART = "flowchart"
    OVERVIEW = "overview"
    FOUNDATION = "foundation"
    BUSINESS = "business"
    LEGAL = "legal"
    SUMMARY = "summary"

    def display_name(self, language: Language) -> str:
        return _DISPLAY_NAMES[self][language]


_DISPLAY_NAMES = {
    Stage.FLOWCHART: {Language.CHINESE: "流程图生成", Language.ENGLISH: "Flowchart Generation"},
    Stage.OVERVIEW: {Language.CHINESE: "合同概要", Language.ENGLISH: "Contract Overview"},
    Stage.FOUNDATION: {Language.CHINESE: "基础审核", Language.ENGLISH: "Foundation Review"},
    Stage.BUSINESS: {Language.CHINESE: "业务条款审核", Language.ENGLISH: "Business Terms Review"},
    Stage.LEGAL: {Language.CHINESE: "法律条款审核", Language.ENGLISH: "Legal Terms Review"},
    Stage.SUMMARY: {Language.CHINESE: "审核总结", Language.ENGLISH: "Review Summary"},
}


def annotate_stage_error(stage: Stage, error: Exception, language: Language) -> ReviewError:
    """Prefix a stage failure with the stage's display name.

    Structural errors (missing key, bad endpoint, document problems) are not
    about the stage and come back unchanged.
    """
    if isinstance(error, ReviewError):
        if error.is_structural:
            return error
        detail = error.describe(language)
    else:
        detail = str(error) or error.__class__.__name__

    name = stage.display_name(language)
    if language == Language.CHINESE:
        return ServiceError(f"「{name}」阶段失败：{detail}")
    return ServiceError(f"「{name}」 stage failed: {detail}")


class StageRunner:
    """Runs one prompt as ``[system, user]`` against the chat model. No retries."""

    def __init__(self, transport: ChatTransport):
        self.transport = transport

    async def run_stage(
        self,
        stage: Stage,
        prompt: str,
        settings: Settings,
        credentials: Credentials,
        temperature: float | None = None,
    ) -> str:
        messages = [
            {"role": "system", "content": prompts.system_prompt(settings.language)},
            {"role": "user", "content": prompt},
        ]
        started = time.monotonic()
        try:
            text = await self.transport.send(
                messages,
                model=settings.chat_model,
                temperature=settings.temperature if temperature is None else temperature,
                settings=settings,
                credentials=credentials,
            )
        except Exception as e:
            annotated = annotate_stage_error(stage, e, settings.language)
            if annotated is e:
                raise
            raise annotated from e

        logger.debug("Stage %s finished in %.1fs", stage.value, time.monotonic() - started)
        return text

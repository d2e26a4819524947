"""Chat-completion client for the OpenAI-compatible DashScope endpoint."""

from __future__ import annotations

import json
import math
import re
from typing import Any, Optional

import structlog
from langchain_core.prompts import ChatPromptTemplate
from langchain_openai import ChatOpenAI

from src.common.config import Settings, get_settings

logger = structlog.get_logger()

_FENCE_RE = re.compile(r"```(?:json)?\s*")
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def _finite_float(raw: str) -> float:
    value = float(raw)
    if not math.isfinite(value):
        raise ValueError(f"non-finite number: {raw}")
    return value


def _reject_constant(raw: str) -> float:
    raise ValueError(f"non-finite number: {raw}")


class AIServiceUnavailableError(RuntimeError):
    """The AI collaborator is unconfigured, unreachable or returned unusable output."""


def parse_json_object(content: str) -> dict[str, Any]:
    cleaned = _FENCE_RE.sub("", content).strip()
    match = _OBJECT_RE.search(cleaned)
    if not match:
        raise AIServiceUnavailableError("AI response did not contain a JSON object")
    try:
        parsed = json.loads(
            match.group(0), parse_float=_finite_float, parse_constant=_reject_constant
        )
    except ValueError as exc:
        raise AIServiceUnavailableError("AI response was not valid JSON") from exc
    if not isinstance(parsed, dict):
        raise AIServiceUnavailableError("AI response JSON was not an object")
    return parsed


class LLMClient:
    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._models: dict[tuple[str, float, int], ChatOpenAI] = {}

    @property
    def enabled(self) -> bool:
        return self.settings.ai_enabled

    def _llm(self, model: str, temperature: float, max_tokens: int) -> ChatOpenAI:
        key = (model, temperature, max_tokens)
        if key not in self._models:
            self._models[key] = ChatOpenAI(
                model=model,
                api_key=self.settings.ai_api_key,
                base_url=self.settings.ai_base_url,
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=self.settings.ai_timeout_seconds,
                max_retries=0,
            )
        return self._models[key]

    async def complete_json(
        self,
        prompt: str,
        *,
        model: str,
        system: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: int = 1000,
    ) -> dict[str, Any]:
        """Run one chat completion and parse its JSON object.

        Raises ``AIServiceUnavailableError`` for every failure mode so callers
        only have one thing to catch before falling back.
        """
        if not self.enabled:
            raise AIServiceUnavailableError("DASHSCOPE_API_KEY is not configured")

        messages = [("human", "{prompt}")]
        if system:
            messages.insert(0, ("system", "{system}"))
        chain = ChatPromptTemplate.from_messages(messages) | self._llm(model, temperature, max_tokens)

        try:
            response = await chain.ainvoke({"prompt": prompt, "system": system or ""})
        except Exception as exc:
            logger.warning("ai_request_failed", model=model, error=type(exc).__name__)
            raise AIServiceUnavailableError(f"AI request failed: {exc}") from exc

        content = str(getattr(response, "content", "") or "").strip()
        if not content:
            raise AIServiceUnavailableError("AI response was empty")
        return parse_json_object(content)

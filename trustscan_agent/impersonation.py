"""
Brand-impersonation (typosquatting) judgment.

The scorer only depends on the ``ImpersonationClassifier`` protocol; the
default implementation asks Google Gemini whether a hostname mimics a well-known
brand (``g0ogle.com``, ``paypa1.com``, ...).
"""
from __future__ import annotations

import json
import logging
from typing import Any, Protocol

from google import genai
from google.genai import types

from .models import ImpersonationVerdict

logger = logging.getLogger(__name__)


class ClassifierUnavailable(RuntimeError):
    """Raised when the classifier cannot run (no credential configured)."""


class ImpersonationClassifier(Protocol):
    async def classify(self, hostname: str) -> ImpersonationVerdict: ...


def _build_prompt(hostname: str) -> str:
    return f"""Analyze the domain "{hostname}". Is this URL trying to impersonate a famous brand (like 'g0ogle.com', 'paypa1.com', 'faceb0ok.com')? Check for Levenshtein distance against top 500 global brands.
A brand's own official domains are NOT impersonation.
Return ONLY a JSON object: {{ "isImpersonation": boolean, "targetBrand": string | null }}."""


def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def parse_verdict(text: str) -> ImpersonationVerdict:
    """Parse the model's strict-JSON reply. Raises ``ValueError`` on anything else."""
    raw: Any = json.loads(_strip_fences(text or ""))
    if not isinstance(raw, dict) or not isinstance(raw.get("isImpersonation"), bool):
        raise ValueError(f"unexpected classifier reply: {text[:200]!r}")

    suspicious = raw["isImpersonation"]
    target = raw.get("targetBrand")
    if not isinstance(target, str) or not target.strip():
        target = None
    return ImpersonationVerdict(suspicious=suspicious, target=target.strip() if target else None)


class GeminiImpersonationClassifier:
    def __init__(self, api_key: str | None, model: str = "gemini-1.5-flash") -> None:
        self.model = model
        self._client = genai.Client(api_key=api_key) if api_key else None

    async def classify(self, hostname: str) -> ImpersonationVerdict:
        if self._client is None:
            raise ClassifierUnavailable("GEMINI_API_KEY is not set")

        config = types.GenerateContentConfig(
            response_mime_type="application/json",
            temperature=0.0,
            max_output_tokens=256,
        )
        resp = await self._client.aio.models.generate_content(
            model=self.model,
            contents=_build_prompt(hostname),
            config=config,
        )
        verdict = parse_verdict(getattr(resp, "text", None) or "")
        if verdict.suspicious:
            logger.info("impersonation suspected host=%s target=%s", hostname, verdict.target)
        return verdict

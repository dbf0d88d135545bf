# Path: vibefilter/expansion/generator.py
# Purpose: Generate visual expansions for abstract terms with a chat-completion model.
# Layer: vibefilter/expansion.
# Details: Talks to an OpenAI-compatible endpoint over requests and falls back across models.

from __future__ import annotations

import json
import logging
import re
from typing import Any, List, Optional, Protocol, Sequence, Tuple

import requests

from vibefilter.errors import GenerationError

logger = logging.getLogger(__name__)

_FENCE_START = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_END = re.compile(r"\s*```$")

PROMPT_TEMPLATE = """Expand the abstract query "{term}" into 4-6 visual descriptions that CLIP can match against {category} design images. Focus on general visual patterns, colors, and design elements - not overly specific scenarios.

Write descriptions that are:
- Concrete enough for CLIP to understand (specific colors, shapes, patterns)
- General enough to match many designs (not tied to one specific scenario)
- Focused on visual patterns (what you see, not abstract concepts)

Examples:
- "love" -> ["soft pink and red gradient background", "rounded shapes with warm colors", "gentle glowing effects and pastel colors", "warm-toned color palette"]
- "fun" -> ["bright saturated colors with playful rounded shapes", "vibrant colorful buttons and icons", "bold colorful text on bright backgrounds", "multiple bright colors in playful compositions"]
- "cozy" -> ["warm brown and orange color scheme", "soft rounded corners with warm lighting", "comfortable spacing with earthy tones", "warm ambient colors with soft shadows"]
- "serious" -> ["black and white color scheme", "sharp edges with high contrast", "geometric shapes in monochrome", "structured grid layout with minimal colors"]
- "dark" -> ["black background with white elements", "dark color palette with high contrast", "dimly lit scene with shadows", "low-light composition with bright accents"]

Return ONLY a JSON array of strings.

Format: ["description1", "description2", "description3", "description4"]"""


class ExpansionGenerator(Protocol):
    """Anything that can turn an abstract term into short visual phrases."""

    model: str

    def generate(self, term: str, category: str) -> List[str]:
        ...


def parse_expansions(text: str, limit: int = 6) -> List[str]:
    """Parse a model reply into at most ``limit`` trimmed, non-empty phrases.

    Accepts a bare JSON array or an object wrapping it under ``expansions`` or ``array``,
    optionally inside a Markdown code fence.
    """

    cleaned = _FENCE_END.sub("", _FENCE_START.sub("", text.strip()))
    try:
        parsed: Any = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise GenerationError(f"Generator reply is not JSON: {text[:120]!r}") from exc

    if isinstance(parsed, dict):
        for key in ("expansions", "array"):
            if isinstance(parsed.get(key), list):
                parsed = parsed[key]
                break
    if not isinstance(parsed, list):
        raise GenerationError(f"Expected a list of expansions, got {type(parsed).__name__}.")

    phrases = [str(item).strip() for item in parsed if item is not None]
    return [phrase for phrase in phrases if phrase][:limit]


class ChatCompletionGenerator:
    """Expansion generator backed by ``/chat/completions`` (Groq by default)."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.groq.com/openai/v1",
        models: Sequence[str] = ("llama-3.3-70b-versatile", "llama-3.1-8b-instant", "qwen/qwen3-32b"),
        timeout_seconds: float = 20.0,
        max_expansions: int = 6,
        temperature: float = 0.7,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not models:
            raise ValueError("At least one generator model is required.")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.models = list(models)
        self.timeout_seconds = timeout_seconds
        self.max_expansions = max_expansions
        self.temperature = temperature
        self.model = self.models[0]
        self._session = session or requests.Session()

    def generate(self, term: str, category: str) -> List[str]:
        """Return 4-6 visual phrases for ``term``; raises GenerationError on any failure."""

        prompt = PROMPT_TEMPLATE.format(term=term, category=category)
        model, content = self._complete(prompt)
        self.model = model
        expansions = parse_expansions(content, limit=self.max_expansions)
        logger.info("Generated %d expansions for %r (%s) with %s", len(expansions), term, category, model)
        return expansions

    def _complete(self, prompt: str) -> Tuple[str, str]:
        """Try each model in order, moving on only when one is blocked or decommissioned."""

        last_error = ""
        for model in self.models:
            body = {
                "model": model,
                "messages": [{"role": "user", "content": prompt}],
                "temperature": self.temperature,
            }
            try:
                response = self._session.post(
                    f"{self.base_url}/chat/completions",
                    json=body,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    timeout=self.timeout_seconds,
                )
            except requests.exceptions.RequestException as exc:
                raise GenerationError(f"Generation request failed: {exc}") from exc

            if not response.ok:
                last_error = response.text[:300]
                if "blocked" in last_error or "decommissioned" in last_error:
                    logger.warning("Generator model %s unavailable, trying next", model)
                    continue
                raise GenerationError(f"Generation endpoint returned {response.status_code}: {last_error}")

            try:
                payload = response.json()
                content = payload["choices"][0]["message"]["content"] or ""
            except (ValueError, KeyError, IndexError, TypeError) as exc:
                raise GenerationError("Generation endpoint returned an unexpected payload.") from exc
            return model, content

        raise GenerationError(f"All generator models are blocked. Last error: {last_error}")

"""AI classifier: prompt, response validation and the provider fallback chain.

The chain is data. ``build_attempts`` turns configuration into an ordered
list of ``Attempt`` objects and ``run_attempts`` tries them in turn, so
adding or reordering providers never touches control flow.
"""

from __future__ import annotations

import asyncio
import json
import random
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

from loguru import logger
from openai import APIError, AsyncOpenAI

from skillcat.classification.policy import MAX_CATEGORIES, ClassificationResult, SuggestedCategory
from skillcat.errors import ClassificationResponseError, LlmError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Collection, Iterable

    from skillcat.classification.categories import Category
    from skillcat.settings import Settings

_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)
_SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
MIN_SLUG_LENGTH = 2
MAX_SLUG_LENGTH = 40


class ChatCompleter(Protocol):
    async def complete(self, model: str, prompt: str) -> str: ...


class ChatProvider:
    """OpenAI-compatible chat-completions endpoint (OpenRouter, DeepSeek)."""

    def __init__(self, name: str, base_url: str, api_key: str, *, timeout: float = 30.0) -> None:
        self.name = name
        self._client = AsyncOpenAI(base_url=base_url, api_key=api_key, timeout=timeout, max_retries=0)

    async def complete(self, model: str, prompt: str) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": prompt}],
                temperature=0.3,
                max_tokens=500,
            )
        except APIError as exc:
            raise LlmError(f"{self.name} call with {model} failed: {exc}") from exc
        if not response.choices:
            raise LlmError(f"{self.name} returned no choices for {model}")
        content = response.choices[0].message.content
        if not content:
            raise LlmError(f"{self.name} returned an empty response for {model}")
        return content

    async def close(self) -> None:
        await self._client.close()


@dataclass
class AiProviders:
    """Configured providers. Either may be missing; the chain skips what is not configured."""

    primary: ChatCompleter | None = None
    secondary: ChatCompleter | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> AiProviders:
        primary = secondary = None
        if settings.openrouter_api_key is not None:
            primary = ChatProvider(
                "openrouter",
                settings.openrouter_api_url,
                settings.openrouter_api_key.get_secret_value(),
                timeout=settings.ai_timeout,
            )
        if settings.deepseek_api_key is not None:
            secondary = ChatProvider(
                "deepseek",
                settings.deepseek_api_url,
                settings.deepseek_api_key.get_secret_value(),
                timeout=settings.ai_timeout,
            )
        return cls(primary=primary, secondary=secondary)

    async def close(self) -> None:
        for provider in (self.primary, self.secondary):
            if isinstance(provider, ChatProvider):
                await provider.close()


@dataclass(frozen=True)
class Attempt:
    label: str
    call: Callable[[], Awaitable[str]]


def build_prompt(content: str, vocabulary: Iterable[Category], tags: Iterable[str] | None, *, char_budget: int) -> str:
    lines = []
    for category in vocabulary:
        keywords = f" (keywords: {', '.join(category.keywords)})" if category.keywords else ""
        lines.append(f"- {category.slug}: {category.name} - {category.description}{keywords}")
    tag_list = list(tags or [])
    tags_hint = f"\nAuthor-provided tags (use as hints): {', '.join(tag_list)}\n" if tag_list else ""

    return f"""You are a classifier for agent skills. Classify the SKILL.md below into 1-3 of the available categories.

Available categories:
{chr(10).join(lines)}
{tags_hint}
SKILL.md content:
---
{content[:char_budget]}
---

Respond with a JSON object containing:
- categories: array of 1-3 category slugs from the list above, most relevant first
- confidence: number between 0 and 1
- reasoning: one sentence explaining the choice
- suggestedCategory: only if no existing category fits, an object with slug (lowercase, hyphenated), name and description; otherwise omit it

Example: {{"categories": ["git", "automation"], "confidence": 0.85, "reasoning": "Automates commit messages"}}

Respond ONLY with the JSON object."""


def _validate_suggestion(raw: Any, vocabulary: Collection[str]) -> SuggestedCategory | None:
    if not isinstance(raw, dict):
        return None
    slug = str(raw.get("slug") or "").strip().lower()
    name = str(raw.get("name") or "").strip()
    if not (MIN_SLUG_LENGTH <= len(slug) <= MAX_SLUG_LENGTH) or not _SLUG_RE.match(slug):
        return None
    if slug in vocabulary or not name:
        return None
    description = raw.get("description")
    return SuggestedCategory(slug=slug, name=name[:80], description=str(description)[:300] if description else None)


def parse_classification_response(
    text: str,
    vocabulary: Collection[str],
    *,
    fallback_category: str = "productivity",
) -> ClassificationResult:
    """Validate a model answer against the vocabulary.

    Unknown slugs are dropped. A valid new-category suggestion is appended when
    there is room. An answer that leaves nothing usable falls back to
    ``fallback_category``; an answer that is not a JSON object raises.
    """

    match = _JSON_OBJECT_RE.search(text)
    if not match:
        raise ClassificationResponseError("No JSON object in model response")
    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise ClassificationResponseError(f"Invalid JSON in model response: {exc}") from exc
    if not isinstance(payload, dict):
        raise ClassificationResponseError("Model response is not a JSON object")

    raw_categories = payload.get("categories") or []
    if isinstance(raw_categories, str):
        raw_categories = [raw_categories]
    categories = [
        slug for slug in dict.fromkeys(str(item).strip().lower() for item in raw_categories) if slug in vocabulary
    ][:MAX_CATEGORIES]

    suggestion = _validate_suggestion(payload.get("suggestedCategory") or payload.get("suggested_category"), vocabulary)
    if suggestion is not None and len(categories) < MAX_CATEGORIES:
        categories.append(suggestion.slug)
    elif suggestion is not None:
        suggestion = None

    if not categories:
        categories = [fallback_category]

    try:
        confidence = float(payload.get("confidence", 0.5))
    except (TypeError, ValueError):
        confidence = 0.5
    reasoning = payload.get("reasoning")
    return ClassificationResult(
        categories=categories,
        confidence=min(1.0, max(0.0, confidence)),
        reasoning=str(reasoning) if reasoning else None,
        suggested_category=suggestion,
    )


def build_attempts(
    prompt: str,
    settings: Settings,
    providers: AiProviders,
    *,
    rng: random.Random | None = None,
) -> list[Attempt]:
    """Primary model, one retry of it, a random alternate from the pool, then the secondary provider."""

    attempts: list[Attempt] = []
    pool = settings.free_model_pool
    primary_model = settings.ai_model or (pool[0] if pool else None)

    if providers.primary is not None and primary_model:
        primary = providers.primary
        attempts.append(Attempt(f"primary:{primary_model}", lambda: primary.complete(primary_model, prompt)))
        attempts.append(Attempt(f"primary-retry:{primary_model}", lambda: primary.complete(primary_model, prompt)))
        alternates = [model for model in pool if model != primary_model]
        if alternates:
            alternate = (rng or random).choice(alternates)
            attempts.append(Attempt(f"alternate:{alternate}", lambda: primary.complete(alternate, prompt)))
    elif providers.primary is None:
        logger.debug("Primary AI provider not configured")
    else:
        logger.debug("No primary AI model configured (set SKILLCAT_AI_MODEL or SKILLCAT_FREE_MODELS)")

    if providers.secondary is not None:
        secondary = providers.secondary
        model = settings.deepseek_model
        attempts.append(Attempt(f"secondary:{model}", lambda: secondary.complete(model, prompt)))
    return attempts


async def run_attempts(
    attempts: Iterable[Attempt],
    vocabulary: Collection[str],
    *,
    timeout: float,
    fallback_category: str = "productivity",
) -> ClassificationResult | None:
    """First attempt whose answer validates wins; ``None`` when the chain is exhausted."""

    for attempt in attempts:
        try:
            text = await asyncio.wait_for(attempt.call(), timeout=timeout)
            result = parse_classification_response(text, vocabulary, fallback_category=fallback_category)
        except (LlmError, ClassificationResponseError, TimeoutError) as exc:
            logger.warning("AI attempt {} failed: {}", attempt.label, exc)
            continue
        logger.info("AI attempt {} succeeded: {}", attempt.label, result.categories)
        return result
    return None

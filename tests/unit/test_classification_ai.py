"""Tests for the AI classifier: prompt, response validation and the fallback chain."""

from __future__ import annotations

import asyncio
import random

import pytest

from skillcat.classification.ai import (
    AiProviders,
    Attempt,
    build_attempts,
    build_prompt,
    parse_classification_response,
    run_attempts,
)
from skillcat.classification.categories import Category
from skillcat.errors import ClassificationResponseError, LlmError
from skillcat.settings import Settings
from tests.factories import FakeChat

VOCABULARY = {"git", "testing", "productivity"}


def test_build_prompt_lists_vocabulary_tags_and_truncates() -> None:
    vocabulary = [Category(slug="git", name="Git", description="Git helpers", keywords=("commit",))]
    prompt = build_prompt("x" * 50, vocabulary, ["cli"], char_budget=10)
    assert "- git: Git - Git helpers (keywords: commit)" in prompt
    assert "Author-provided tags (use as hints): cli" in prompt
    assert "x" * 10 in prompt
    assert "x" * 11 not in prompt


def test_parse_response_extracts_json_from_prose() -> None:
    text = 'Sure! {"categories": ["Git", "unknown", "testing"], "confidence": 0.9, "reasoning": "commits"} done'
    result = parse_classification_response(text, VOCABULARY)
    assert result.categories == ["git", "testing"]
    assert result.confidence == 0.9
    assert result.reasoning == "commits"


def test_parse_response_defaults_and_clamps_confidence() -> None:
    assert parse_classification_response('{"categories": ["git"]}', VOCABULARY).confidence == 0.5
    assert parse_classification_response('{"categories": ["git"], "confidence": 7}', VOCABULARY).confidence == 1.0
    assert parse_classification_response('{"categories": ["git"], "confidence": "x"}', VOCABULARY).confidence == 0.5


def test_parse_response_without_usable_slugs_uses_fallback() -> None:
    result = parse_classification_response('{"categories": ["nope"]}', VOCABULARY, fallback_category="productivity")
    assert result.categories == ["productivity"]


@pytest.mark.parametrize("text", ["no json here", "{not json}", "[1, 2]"])
def test_parse_response_rejects_non_objects(text: str) -> None:
    with pytest.raises(ClassificationResponseError):
        parse_classification_response(text, VOCABULARY)


def test_valid_suggestion_is_appended() -> None:
    text = '{"categories": ["git"], "suggestedCategory": {"slug": "Release-Notes", "name": "Release Notes"}}'
    result = parse_classification_response(text, VOCABULARY)
    assert result.categories == ["git", "release-notes"]
    assert result.suggested_category is not None
    assert result.suggested_category.name == "Release Notes"


@pytest.mark.parametrize(
    "suggestion",
    [
        '{"slug": "git", "name": "Git again"}',
        '{"slug": "x", "name": "Too short"}',
        '{"slug": "has spaces", "name": "Bad"}',
        '{"slug": "' + "a" * 41 + '", "name": "Too long"}',
        '{"slug": "no-name"}',
    ],
)
def test_invalid_suggestions_are_dropped(suggestion: str) -> None:
    text = '{"categories": ["git"], "suggestedCategory": ' + suggestion + "}"
    result = parse_classification_response(text, VOCABULARY)
    assert result.suggested_category is None
    assert result.categories == ["git"]


def test_suggestion_dropped_when_no_room() -> None:
    text = (
        '{"categories": ["git", "testing", "productivity"], '
        '"suggestedCategory": {"slug": "release-notes", "name": "Release Notes"}}'
    )
    result = parse_classification_response(text, VOCABULARY)
    assert result.suggested_category is None
    assert len(result.categories) == 3


def test_build_attempts_order(tmp_path) -> None:
    settings = Settings(_env_file=None, output_dir=tmp_path, ai_model="main", free_models="main,alt-1,alt-2")
    providers = AiProviders(primary=FakeChat(), secondary=FakeChat())
    attempts = build_attempts("prompt", settings, providers, rng=random.Random(0))
    labels = [attempt.label for attempt in attempts]
    assert labels[:2] == ["primary:main", "primary-retry:main"]
    assert labels[2] in {"alternate:alt-1", "alternate:alt-2"}
    assert labels[3] == "secondary:deepseek-chat"


def test_build_attempts_without_providers_is_empty(tmp_path) -> None:
    settings = Settings(_env_file=None, output_dir=tmp_path, ai_model="main")
    assert build_attempts("prompt", settings, AiProviders()) == []


def test_build_attempts_uses_first_pool_model_when_unset(tmp_path) -> None:
    settings = Settings(_env_file=None, output_dir=tmp_path, free_models="pool-a")
    attempts = build_attempts("prompt", settings, AiProviders(primary=FakeChat()))
    assert [attempt.label for attempt in attempts] == ["primary:pool-a", "primary-retry:pool-a"]


@pytest.mark.asyncio
async def test_chain_falls_through_failures(tmp_path) -> None:
    settings = Settings(_env_file=None, output_dir=tmp_path, ai_model="main")
    primary = FakeChat(LlmError("rate limited"), "not json at all")
    secondary = FakeChat('{"categories": ["testing"], "confidence": 0.8}')
    attempts = build_attempts("prompt", settings, AiProviders(primary=primary, secondary=secondary))

    result = await run_attempts(attempts, VOCABULARY, timeout=5)
    assert result is not None
    assert result.categories == ["testing"]
    assert primary.models == ["main", "main"]
    assert secondary.models == ["deepseek-chat"]


@pytest.mark.asyncio
async def test_chain_exhausted_returns_none() -> None:
    async def boom() -> str:
        raise LlmError("down")

    async def slow() -> str:
        await asyncio.sleep(1)
        return '{"categories": ["git"]}'

    attempts = [Attempt("a", boom), Attempt("b", slow)]
    assert await run_attempts(attempts, VOCABULARY, timeout=0.01) is None

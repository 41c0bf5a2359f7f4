"""GitHub REST and GraphQL metadata client."""

from __future__ import annotations

import base64
import binascii
import json
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx
from loguru import logger

from skillcat.clients.http import RetryableStatusError, fetch_with_retry
from skillcat.errors import GitHubError
from skillcat.models.skill import MarkerFile, RepoMetadata
from skillcat.utils.time import parse_iso_datetime

if TYPE_CHECKING:
    from collections.abc import Mapping

    from skillcat.clients.http import RequestContext
    from skillcat.settings import Settings

_GRAPHQL_FIELDS = """
      stargazerCount
      forkCount
      pushedAt
      description
      isFork
      repositoryTopics(first: 10) {
        nodes { topic { name } }
      }"""


def decode_base64_text(content: str) -> str:
    """Decode GitHub's newline-wrapped base64 payloads to UTF-8 text."""

    try:
        raw = base64.b64decode(content.replace("\n", ""), validate=False)
    except binascii.Error:
        return ""
    return raw.decode("utf-8", errors="replace")


def build_batch_query(repos: list[tuple[str, str]]) -> str:
    """Build one GraphQL document with an aliased ``repository`` sub-query per repo."""

    parts = []
    for idx, (owner, name) in enumerate(repos):
        parts.append(
            f"  repo{idx}: repository(owner: {json.dumps(owner)}, name: {json.dumps(name)}) {{{_GRAPHQL_FIELDS}\n  }}"
        )
    return "query {\n" + "\n".join(parts) + "\n}"


def _metadata_from_rest(payload: dict[str, Any]) -> RepoMetadata:
    owner = payload.get("owner") or {}
    license_info = payload.get("license") or {}
    return RepoMetadata(
        owner=owner.get("login", ""),
        name=payload.get("name", ""),
        stars=payload.get("stargazers_count") or 0,
        forks=payload.get("forks_count") or 0,
        pushed_at=parse_iso_datetime(payload.get("pushed_at")),
        description=payload.get("description"),
        topics=list(payload.get("topics") or []),
        fork=bool(payload.get("fork")),
        default_branch=payload.get("default_branch") or "main",
        language=payload.get("language"),
        license=license_info.get("spdx_id"),
        html_url=payload.get("html_url"),
        owner_id=owner.get("id"),
        owner_avatar_url=owner.get("avatar_url"),
        owner_type=owner.get("type"),
    )


def _metadata_from_graphql(owner: str, name: str, node: dict[str, Any]) -> RepoMetadata:
    topics_block = node.get("repositoryTopics") or {}
    topics = [
        item["topic"]["name"]
        for item in topics_block.get("nodes") or []
        if item and item.get("topic") and item["topic"].get("name")
    ]
    return RepoMetadata(
        owner=owner,
        name=name,
        stars=node.get("stargazerCount") or 0,
        forks=node.get("forkCount") or 0,
        pushed_at=parse_iso_datetime(node.get("pushedAt")),
        description=node.get("description"),
        topics=topics,
        fork=bool(node.get("isFork")),
    )


class GitHubClient:
    """Thin metadata client. Every call is rate limited and retried; 404 maps to ``None``."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient, ctx: RequestContext) -> None:
        self.settings = settings
        self.client = client
        self.ctx = ctx
        self.api_url = settings.github_api_url.rstrip("/")

    @property
    def has_token(self) -> bool:
        return self.settings.github_token is not None

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": self.settings.github_api_version,
        }
        if self.settings.github_token is not None:
            headers["Authorization"] = f"Bearer {self.settings.github_token.get_secret_value()}"
        return headers

    async def _get(self, url: str, params: dict[str, Any] | None = None) -> Any | None:
        response = await fetch_with_retry(
            self.client,
            self.ctx,
            url,
            request_fn=lambda: self.client.get(url, params=params, headers=self._headers()),
        )
        if response.status_code == 404:
            return None
        if response.is_error:
            raise GitHubError(response.status_code, url)
        return response.json()

    def _repo_url(self, owner: str, name: str) -> str:
        return f"{self.api_url}/repos/{quote(owner)}/{quote(name)}"

    async def get_repo(self, owner: str, name: str) -> RepoMetadata | None:
        payload = await self._get(self._repo_url(owner, name))
        if not isinstance(payload, dict):
            return None
        return _metadata_from_rest(payload)

    async def get_contents(self, owner: str, name: str, path: str) -> MarkerFile | None:
        """Fetch one file through the contents API. Directories and missing paths return None."""

        url = f"{self._repo_url(owner, name)}/contents/{quote(path)}"
        payload = await self._get(url)
        if not isinstance(payload, dict) or payload.get("type") != "file":
            return None
        content = decode_base64_text(payload.get("content") or "")
        if not content and payload.get("download_url"):
            response = await fetch_with_retry(self.client, self.ctx, payload["download_url"])
            response.raise_for_status()
            content = response.text
        return MarkerFile(
            path=payload.get("path", path),
            sha=payload.get("sha", ""),
            content=content,
            html_url=payload.get("html_url"),
        )

    async def get_latest_commit_sha(self, owner: str, name: str, path: str = "") -> str | None:
        """SHA of the latest commit touching ``path`` (whole repository when empty)."""

        params: dict[str, Any] = {"per_page": 1}
        if path:
            params["path"] = path
        payload = await self._get(f"{self._repo_url(owner, name)}/commits", params=params)
        if not isinstance(payload, list) or not payload:
            return None
        return payload[0].get("sha")

    async def get_tree(self, owner: str, name: str, sha: str) -> list[dict[str, Any]]:
        payload = await self._get(f"{self._repo_url(owner, name)}/git/trees/{sha}", params={"recursive": 1})
        if not isinstance(payload, dict):
            return []
        if payload.get("truncated"):
            logger.warning("Tree for {}/{}@{} was truncated by GitHub", owner, name, sha)
        return list(payload.get("tree") or [])

    async def get_blob_text(self, owner: str, name: str, sha: str) -> str | None:
        payload = await self._get(f"{self._repo_url(owner, name)}/git/blobs/{sha}")
        if not isinstance(payload, dict):
            return None
        if payload.get("encoding") == "base64":
            return decode_base64_text(payload.get("content") or "")
        return payload.get("content")

    async def _graphql(self, query: str) -> dict[str, Any]:
        url = self.settings.github_graphql_url
        response = await fetch_with_retry(
            self.client,
            self.ctx,
            url,
            request_fn=lambda: self.client.post(url, json={"query": query}, headers=self._headers()),
        )
        if response.is_error:
            raise GitHubError(response.status_code, url)
        payload = response.json()
        return payload.get("data") or {}

    async def fetch_repos_batch(self, repos: Mapping[str, tuple[str, str]]) -> dict[str, RepoMetadata]:
        """Fetch metadata for many repositories keyed by caller id.

        Requests carry at most ``graphql_batch_size`` aliased sub-queries. A failed
        chunk is logged and skipped so callers can fall back to stored data.
        """

        results: dict[str, RepoMetadata] = {}
        if not repos:
            return results
        if not self.has_token:
            logger.warning("No GitHub token configured; skipping GraphQL batch of {}", len(repos))
            return results

        items = list(repos.items())
        size = self.settings.graphql_batch_size
        for start in range(0, len(items), size):
            chunk = items[start : start + size]
            query = build_batch_query([ref for _, ref in chunk])
            try:
                data = await self._graphql(query)
            except (httpx.HTTPError, RetryableStatusError, GitHubError) as exc:
                logger.warning("GraphQL batch of {} failed: {}", len(chunk), exc)
                continue
            for idx, (key, (owner, name)) in enumerate(chunk):
                node = data.get(f"repo{idx}")
                if node:
                    results[key] = _metadata_from_graphql(owner, name, node)
        if self.ctx.monitor.is_throttled:
            logger.warning("GitHub throttling at {:.1f}% of recent responses", self.ctx.monitor.throttled_percent)
        return results

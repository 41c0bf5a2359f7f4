"""Exception hierarchy for the pipeline.

Not-found conditions are not exceptions: the GitHub client returns ``None``
and callers treat that as a no-op. Storage errors are left as the
underlying SQLAlchemy / obstore exceptions so a unit of work fails and is
retried by its queue or scheduler.
"""

from __future__ import annotations


class SkillcatError(Exception):
    """Base exception for the whole package."""


class GitHubError(SkillcatError):
    """GitHub returned a non-retryable error response."""

    def __init__(self, status_code: int, url: str) -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(f"GitHub API error {status_code} for {url}")


class LlmError(SkillcatError):
    """A single AI provider call failed."""


class ClassificationResponseError(SkillcatError):
    """The model answered, but the answer could not be used."""

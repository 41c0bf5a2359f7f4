"""Client abstractions."""

from .github import GitHubClient
from .http import RateLimitMonitor, RequestContext, build_request_context, create_http_client

__all__ = ["GitHubClient", "RateLimitMonitor", "RequestContext", "build_request_context", "create_http_client"]

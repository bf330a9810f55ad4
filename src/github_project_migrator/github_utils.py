from __future__ import annotations

import logging
import os
from typing import Any, Final

import requests
from github import Auth, Github, GithubException, UnknownObjectException

from . import utils
from .exceptions import NotFoundError, RateLimitedError, RequestError

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

DOTCOM_API_URL: Final[str] = "https://api.github.com"
_DEFAULT_TOKEN_PASS_PATH: Final[str] = "github/cli/token"  # noqa: S105
_FALLBACK_TOKEN_ENV_VAR: Final[str] = "GITHUB_TOKEN"  # noqa: S105
_REQUEST_TIMEOUT: Final[int] = 60


def get_token(pass_path: str | None = None, env_var: str | None = None) -> str | None:
    """Get GitHub token from pass path, env var, GITHUB_TOKEN or the default pass location."""
    if pass_path:
        return utils.get_pass_value(pass_path)

    for name in (env_var, _FALLBACK_TOKEN_ENV_VAR):
        if not name:
            continue
        token: str | None = os.environ.get(name)
        if token:
            return token

    try:
        return utils.get_pass_value(_DEFAULT_TOKEN_PASS_PATH)
    except (ValueError, utils.PassError):
        logger.debug("No GitHub token found in the default pass location")
        return None


def graphql_url_for(base_url: str) -> str:
    """Derive the GraphQL endpoint from a REST API base URL."""
    if base_url.endswith("/api/v3"):
        # GitHub Enterprise Server serves GraphQL next to the versioned REST API
        return base_url[: -len("/v3")] + "/graphql"
    return f"{base_url}/graphql"


def _is_rate_limited(response: requests.Response) -> bool:
    if response.status_code == 429:
        return True
    return response.status_code == 403 and response.headers.get("x-ratelimit-remaining") == "0"


class GitHubClient:
    """Shared client for one GitHub instance.

    REST calls go through PyGithub. PyGithub has no API for Projects (v2),
    so GraphQL documents are posted with a requests session that carries the
    same token, proxy and certificate settings.
    """

    def __init__(
        self,
        token: str,
        *,
        base_url: str = DOTCOM_API_URL,
        proxy_url: str | None = None,
        verify: bool = True,
    ) -> None:
        self.base_url: str = base_url
        self.graphql_url: str = graphql_url_for(base_url)

        self.rest: Github = Github(auth=Auth.Token(token), base_url=base_url, verify=verify)

        self.session: requests.Session = requests.Session()
        self.session.headers.update({"Authorization": f"bearer {token}", "Accept": "application/json"})
        self.session.verify = verify
        if proxy_url:
            self.session.proxies.update({"http": proxy_url, "https": proxy_url})

    def validate_access(self) -> str:
        """Check that the token works and return the authenticated login."""
        try:
            login = self.rest.get_user().login
        except GithubException as e:
            msg = f"GitHub API access failed: {e}"
            raise RequestError(msg, status=e.status, body=e.data) from e
        logger.info(f"GitHub API access validated as {login}")
        return login

    def request(self, method: str, path: str, params: dict[str, Any] | None = None) -> Any:
        """Make a single REST call and return the decoded JSON body."""
        try:
            _, data = self.rest.requester.requestJsonAndCheck(method, path, parameters=params)
        except UnknownObjectException as e:
            msg = f"{method} {path} returned 404"
            raise NotFoundError(msg, status=e.status, body=e.data) from e
        except GithubException as e:
            logger.error(f"REST request {method} {path} failed with status {e.status}: {e.data}")
            msg = f"REST request {method} {path} failed: {e}"
            raise RequestError(msg, status=e.status, body=e.data) from e
        return data

    def query(self, document: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """Run a GraphQL query or mutation and return its ``data`` member."""
        try:
            response = self.session.post(
                self.graphql_url,
                json={"query": document, "variables": variables or {}},
                timeout=_REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            msg = f"GraphQL request failed: {e}"
            raise RequestError(msg) from e

        if response.status_code == 404:
            msg = f"GraphQL endpoint {self.graphql_url} not found"
            raise NotFoundError(msg, status=404, body=response.text)
        if _is_rate_limited(response):
            logger.error(f"GraphQL request rate limited with status {response.status_code}: {response.text}")
            msg = "GitHub API rate limit exceeded"
            raise RateLimitedError(msg, status=response.status_code, body=response.text)
        if not response.ok:
            logger.error(f"GraphQL request failed with status {response.status_code}: {response.text}")
            msg = f"GraphQL request failed with status {response.status_code}"
            raise RequestError(msg, status=response.status_code, body=response.text)

        payload: dict[str, Any] = response.json()
        errors: list[dict[str, Any]] = payload.get("errors") or []
        if errors:
            messages = "; ".join(str(error.get("message")) for error in errors)
            error_types = {error.get("type") for error in errors}
            if "NOT_FOUND" in error_types:
                raise NotFoundError(messages, status=response.status_code, body=payload, errors=errors)
            if "RATE_LIMITED" in error_types:
                raise RateLimitedError(messages, status=response.status_code, body=payload, errors=errors)
            logger.error(f"GraphQL request returned errors with status {response.status_code}: {payload}")
            msg = f"GraphQL errors: {messages}"
            raise RequestError(msg, status=response.status_code, body=payload, errors=errors)

        return payload.get("data") or {}


def get_client(
    token: str,
    *,
    base_url: str = DOTCOM_API_URL,
    proxy_url: str | None = None,
    verify: bool = True,
) -> GitHubClient:
    """Get a GitHub client using the token."""
    return GitHubClient(token, base_url=base_url, proxy_url=proxy_url, verify=verify)

"""
Cursor pagination over GraphQL connections and rate limit reporting.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any, Final, Self

from .exceptions import NotFoundError, RequestError

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence
    from types import TracebackType

    from .github_utils import GitHubClient

logger: logging.Logger = logging.getLogger(__name__)

PAGE_SIZE: Final[int] = 100
RATE_LIMIT_CHECK_INTERVAL: Final[float] = 30.0

RATE_LIMIT_QUERY: Final[str] = "query { rateLimit { limit remaining resetAt } }"


def _connection_at(data: dict[str, Any], path: Sequence[str]) -> dict[str, Any]:
    current: Any = data
    for key in path:
        if not isinstance(current, dict) or current.get(key) is None:
            msg = f"No data at {'.'.join(path)} in GraphQL response"
            raise NotFoundError(msg, body=data)
        current = current[key]
    return current


def paginate(
    client: GitHubClient,
    document: str,
    variables: dict[str, Any],
    path: Sequence[str],
) -> Iterator[dict[str, Any]]:
    """Yield every node of the connection at ``path``, fetching page by page.

    The document must declare a ``$cursor: String`` variable, pass it as
    ``after`` to the connection and select ``pageInfo { hasNextPage
    endCursor }``. Pages are only fetched as the caller consumes nodes.

    Args:
        client: Client to run the query with
        document: GraphQL query document
        variables: Query variables other than the cursor
        path: Keys leading from ``data`` to the connection

    Yields:
        Connection nodes in server order
    """
    cursor: str | None = None
    page = 0
    while True:
        data = client.query(document, {**variables, "cursor": cursor})
        connection = _connection_at(data, path)
        page += 1
        nodes: list[dict[str, Any]] = connection.get("nodes") or []
        logger.debug(f"Fetched page {page} of {'.'.join(path)} with {len(nodes)} node(s)")
        yield from nodes

        page_info: dict[str, Any] = connection.get("pageInfo") or {}
        if not page_info.get("hasNextPage"):
            return
        cursor = page_info["endCursor"]


def log_rate_limit_information(client: GitHubClient) -> bool:
    """Log the GraphQL rate limit usage.

    Returns:
        False when the server has rate limiting disabled, so there is no
        point in checking again
    """
    try:
        data = client.query(RATE_LIMIT_QUERY)
    except RequestError as e:
        logger.error(f"Error checking GitHub rate limit: {e}")
        return True

    rate_limit: dict[str, Any] | None = data.get("rateLimit")
    if not rate_limit:
        logger.info("GitHub rate limit is disabled.")
        return False

    try:
        limit = rate_limit["limit"]
        used = limit - rate_limit["remaining"]
        reset_at = rate_limit["resetAt"]
    except (KeyError, TypeError) as e:
        logger.error(f"Unexpected GitHub rate limit response {rate_limit}: {e!r}")
        return True

    logger.info(f"GitHub GraphQL rate limit: {used}/{limit} used - resets at {reset_at}")
    return True


class RateLimitReporter:
    """Logs rate limit usage now and then periodically from a daemon thread.

    The thread only runs read-only queries on the shared client and dies
    with the process.
    """

    def __init__(self, client: GitHubClient, interval: float = RATE_LIMIT_CHECK_INTERVAL) -> None:
        self._client: GitHubClient = client
        self._interval: float = interval
        self._stopped: threading.Event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if not log_rate_limit_information(self._client):
            return
        self._thread = threading.Thread(target=self._run, name="rate-limit-reporter", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stopped.set()

    def _run(self) -> None:
        while not self._stopped.wait(self._interval):
            if not log_rate_limit_information(self._client):
                return

    def __enter__(self) -> Self:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.stop()

"""Version-control collaborator: contract plus a GitHub REST implementation.

The coordinator only depends on VCSClient. GitHubClient talks to the REST
API through httpx and polls combined commit status for validation runs.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Collection, Iterable
from typing import Any

import httpx
import structlog

from mergegate.gate.retry import Clock, RetryPolicy, SystemClock
from mergegate.gate.state import Candidate
from mergegate.infra.errors import ValidationTimeoutError, VCSError

logger = structlog.get_logger()

STATE_PENDING = "pending"
STATE_SUCCESS = "success"
STATE_FAILURE = "failure"
_FAILED_STATES = frozenset({"failure", "error"})


class VCSClient(ABC):
    """Operations the gate needs from the version-control host."""

    def has_label(self, labels: Collection[str], name: str) -> bool:
        return name in labels

    @abstractmethod
    async def get_candidate(self, number: int) -> Candidate:
        """Fetch a change with its labels."""
        ...

    @abstractmethod
    async def write_comment(self, number: int, body: str) -> None: ...

    @abstractmethod
    async def wait_for_validation_start(self, number: int) -> None:
        """Block until a validation run is observed starting on the change."""
        ...

    @abstractmethod
    async def wait_for_validation_result(
        self,
        number: int,
        exclude_contexts: Collection[str],
        require_success: bool,
    ) -> bool:
        """Block until the validation run is terminal; return whether it passed."""
        ...

    @abstractmethod
    async def merge(self, number: int, actor: str) -> None: ...


def combine_states(
    statuses: Iterable[dict[str, Any]],
    exclude_contexts: Collection[str] = (),
) -> str:
    """Fold individual commit statuses into one state.

    Any failure/error wins, then any pending. No statuses at all counts as
    pending, matching GitHub's combined status.
    """
    states = [
        str(status.get("state", ""))
        for status in statuses
        if status.get("context") not in exclude_contexts
    ]
    if any(state in _FAILED_STATES for state in states):
        return STATE_FAILURE
    if not states or any(state == STATE_PENDING for state in states):
        return STATE_PENDING
    return STATE_SUCCESS


class GitHubClient(VCSClient):
    """GitHub REST client scoped to one repository."""

    def __init__(
        self,
        *,
        org: str,
        project: str,
        token: str = "",
        api_url: str = "https://api.github.com",
        timeout_s: float = 10.0,
        poll_policy: RetryPolicy | None = None,
        clock: Clock | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._repo = f"repos/{org}/{project}"
        self._client = client or httpx.AsyncClient(base_url=api_url, timeout=timeout_s)
        # Injected clients get the same auth and API-version headers.
        self._client.headers.update(headers)
        self._owns_client = client is None
        self._poll_policy = poll_policy or RetryPolicy()
        self._clock = clock or SystemClock()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"/{self._repo}/{path}"
        try:
            response = await self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise VCSError(
                f"GitHub {method} {path} returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise VCSError(f"GitHub {method} {path} failed: {e}") from e
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise VCSError(f"GitHub {method} {path} returned invalid JSON") from e

    async def get_candidate(self, number: int) -> Candidate:
        issue = await self._request("GET", f"issues/{number}")
        if not isinstance(issue, dict):
            raise VCSError(f"Unexpected issue payload for #{number}")
        labels = frozenset(
            str(label["name"])
            for label in issue.get("labels") or []
            if isinstance(label, dict) and "name" in label
        )
        return Candidate(number=number, labels=labels, title=str(issue.get("title") or ""))

    async def write_comment(self, number: int, body: str) -> None:
        await self._request("POST", f"issues/{number}/comments", json={"body": body})
        logger.info("github_comment_posted", number=number)

    async def _head_sha(self, number: int) -> str:
        pull = await self._request("GET", f"pulls/{number}")
        sha = pull.get("head", {}).get("sha") if isinstance(pull, dict) else None
        if not isinstance(sha, str) or not sha:
            raise VCSError(f"Pull request #{number} has no head sha")
        return sha

    async def validation_state(
        self, number: int, exclude_contexts: Collection[str] = (),
    ) -> str:
        sha = await self._head_sha(number)
        combined = await self._request("GET", f"commits/{sha}/status")
        statuses = combined.get("statuses") if isinstance(combined, dict) else None
        return combine_states(statuses or [], exclude_contexts)

    async def _poll(
        self,
        fetch: Callable[[], Awaitable[str]],
        done: Callable[[str], bool],
        *,
        what: str,
        number: int,
    ) -> str:
        started = self._clock.monotonic()
        attempts = 0
        while True:
            state = await fetch()
            if done(state):
                return state
            attempts += 1
            elapsed = self._clock.monotonic() - started
            if not self._poll_policy.should_retry(attempts, elapsed):
                raise ValidationTimeoutError(
                    f"Gave up waiting for {what} on #{number} after {attempts} polls "
                    f"(last state: {state})"
                )
            logger.debug("github_poll_waiting", what=what, number=number, state=state)
            await self._clock.sleep(self._poll_policy.interval_s)

    async def wait_for_validation_start(self, number: int) -> None:
        await self._poll(
            lambda: self.validation_state(number),
            lambda state: state == STATE_PENDING,
            what="validation start",
            number=number,
        )

    async def wait_for_validation_result(
        self,
        number: int,
        exclude_contexts: Collection[str],
        require_success: bool,
    ) -> bool:
        state = await self._poll(
            lambda: self.validation_state(number, exclude_contexts),
            lambda state: state != STATE_PENDING,
            what="validation result",
            number=number,
        )
        if require_success:
            return state == STATE_SUCCESS
        return state != STATE_FAILURE

    async def merge(self, number: int, actor: str) -> None:
        await self._request(
            "PUT",
            f"pulls/{number}/merge",
            json={
                "commit_title": f"Merge pull request #{number}",
                "commit_message": f"Automatic merge from {actor}",
            },
        )
        logger.info("github_pull_merged", number=number, actor=actor)

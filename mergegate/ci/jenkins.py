"""Build stability checks against Jenkins.

One HTTP round-trip per check. Every failure mode (transport, HTTP status,
malformed payload) surfaces as CIError; nothing is guessed as stable or
unstable.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import quote

import httpx
import structlog

from mergegate.infra.errors import CIError

logger = structlog.get_logger()

_STABLE_RESULT = "SUCCESS"


class BuildStabilityChecker(ABC):
    """Reports whether a named build job is currently stable."""

    @abstractmethod
    async def is_stable(self, job_name: str) -> bool:
        """Return True if the job's last completed build succeeded.

        Raises CIError if the build-status source cannot answer.
        """
        ...


class JenkinsClient(BuildStabilityChecker):
    """Reads `lastCompletedBuild` of a job from the Jenkins JSON API."""

    def __init__(
        self,
        host: str,
        *,
        timeout_s: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._host = host.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout_s)
        self._owns_client = client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def last_completed_build(self, job_name: str) -> dict[str, Any]:
        url = f"{self._host}/job/{quote(job_name, safe='')}/lastCompletedBuild/api/json"
        try:
            response = await self._client.get(url)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise CIError(
                f"Jenkins returned HTTP {e.response.status_code} for job {job_name}"
            ) from e
        except httpx.HTTPError as e:
            raise CIError(f"Jenkins request failed for job {job_name}: {e}") from e
        except ValueError as e:
            raise CIError(f"Jenkins returned invalid JSON for job {job_name}") from e

        if not isinstance(payload, dict):
            raise CIError(f"Unexpected Jenkins payload for job {job_name}")
        return payload

    async def is_stable(self, job_name: str) -> bool:
        build = await self.last_completed_build(job_name)
        result = build.get("result")
        if not isinstance(result, str):
            raise CIError(f"Jenkins build for job {job_name} has no result")
        logger.debug(
            "jenkins_build_result",
            job=job_name,
            build_number=build.get("number"),
            result=result,
        )
        return result == _STABLE_RESULT

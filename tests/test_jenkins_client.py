"""Tests for JenkinsClient against a mocked Jenkins JSON API."""

from __future__ import annotations

import httpx
import pytest

from mergegate.ci.jenkins import JenkinsClient
from mergegate.infra.errors import CIError

HOST = "http://jenkins.test"


def _client(handler) -> JenkinsClient:
    return JenkinsClient(HOST, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


class TestIsStable:
    @pytest.mark.asyncio
    async def test_success_is_stable(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, json={"number": 12, "result": "SUCCESS"})

        assert await _client(handler).is_stable("kubernetes-build") is True
        assert seen == [f"{HOST}/job/kubernetes-build/lastCompletedBuild/api/json"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("result", ["FAILURE", "UNSTABLE", "ABORTED"])
    async def test_other_results_are_not_stable(self, result: str) -> None:
        client = _client(lambda _req: httpx.Response(200, json={"result": result}))
        assert await client.is_stable("job") is False

    @pytest.mark.asyncio
    async def test_http_error_raises(self) -> None:
        client = _client(lambda _req: httpx.Response(404, text="no such job"))
        with pytest.raises(CIError, match="HTTP 404"):
            await client.is_stable("missing")

    @pytest.mark.asyncio
    async def test_transport_error_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(CIError, match="request failed"):
            await _client(handler).is_stable("job")

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self) -> None:
        client = _client(lambda _req: httpx.Response(200, text="<html>"))
        with pytest.raises(CIError, match="invalid JSON"):
            await client.is_stable("job")

    @pytest.mark.asyncio
    async def test_missing_result_raises(self) -> None:
        # An in-progress build has result null.
        client = _client(lambda _req: httpx.Response(200, json={"result": None}))
        with pytest.raises(CIError, match="no result"):
            await client.is_stable("job")

    @pytest.mark.asyncio
    async def test_job_name_is_quoted(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.raw_path.decode())
            return httpx.Response(200, json={"result": "SUCCESS"})

        await _client(handler).is_stable("folder job")
        assert seen == ["/job/folder%20job/lastCompletedBuild/api/json"]

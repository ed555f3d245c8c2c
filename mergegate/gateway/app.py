from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import APIRouter, FastAPI, Request, Response

from mergegate.ci.jenkins import JenkinsClient
from mergegate.config.settings import Settings, get_settings
from mergegate.gate.coordinator import GateCoordinator
from mergegate.gate.retry import RetryPolicy, SystemClock
from mergegate.gateway.status import StatusPublisher
from mergegate.infra.logging import setup_logging
from mergegate.vcs.github import GitHubClient

logger = structlog.get_logger()


def build_coordinator(
    settings: Settings,
    *,
    jenkins: JenkinsClient,
    github: GitHubClient,
) -> GateCoordinator:
    """Wire a coordinator from settings. Fails fast when no jobs are configured."""
    job_names = settings.jenkins.job_names
    if not job_names:
        raise RuntimeError("JENKINS_JOBS must list at least one build job.")
    return GateCoordinator(
        checker=jenkins,
        vcs=github,
        job_names=job_names,
        bypass_label=settings.gate.bypass_label,
        retry_policy=RetryPolicy(
            interval_s=settings.gate.poll_interval_s,
            max_attempts=settings.gate.max_attempts,
            deadline_s=settings.gate.deadline_s,
        ),
        clock=SystemClock(),
    )


def build_clients(settings: Settings) -> tuple[JenkinsClient, GitHubClient]:
    jenkins = JenkinsClient(settings.jenkins.host, timeout_s=settings.jenkins.timeout_s)
    github = GitHubClient(
        org=settings.github.org,
        project=settings.github.project,
        token=settings.github.token,
        api_url=settings.github.api_url,
        timeout_s=settings.github.timeout_s,
        poll_policy=RetryPolicy(
            interval_s=settings.github.poll_interval_s,
            max_attempts=settings.github.poll_max_attempts,
        ),
    )
    return jenkins, github


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Standalone lifespan: build clients and a coordinator from settings."""
    settings = get_settings()
    setup_logging(json_output=settings.log.json_output, log_level=settings.log.level)

    jenkins, github = build_clients(settings)
    try:
        coordinator = build_coordinator(settings, jenkins=jenkins, github=github)
        await coordinator.set_whitelist(settings.gate.whitelist_users)

        _attach(app, coordinator)
        logger.info(
            "gateway_started",
            host=settings.gateway.host,
            port=settings.gateway.port,
            jobs=list(coordinator.job_names),
            bypass_label=settings.gate.bypass_label or None,
        )

        yield

        _attach(app, None)
    finally:
        await jenkins.aclose()
        await github.aclose()
        logger.info("gateway_stopped")


def _shared_lifespan(coordinator: GateCoordinator):
    """Lifespan for an app that reports on a coordinator owned by its caller."""

    @asynccontextmanager
    async def shared(app: FastAPI) -> AsyncIterator[None]:
        _attach(app, coordinator)
        logger.info("status_gateway_started", jobs=list(coordinator.job_names))
        try:
            yield
        finally:
            _attach(app, None)

    return shared


def _attach(app: FastAPI, coordinator: GateCoordinator | None) -> None:
    publisher: StatusPublisher = app.state.publisher
    publisher.attach(coordinator)
    app.state.coordinator = coordinator


router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/api/gate")
async def gate_status(request: Request) -> Response:
    publisher: StatusPublisher = request.app.state.publisher
    status_code, body = await publisher.render()
    media_type = "application/json" if status_code < 400 else "text/plain"
    return Response(content=body, status_code=status_code, media_type=media_type)


def create_app(coordinator: GateCoordinator | None = None) -> FastAPI:
    """Build the status app.

    Without a coordinator the app wires its own from settings at startup.
    With one, it serves snapshots of that coordinator, so an evaluation
    running on the same event loop is visible while it is in flight.
    """
    application = FastAPI(
        title="mergegate",
        version="0.1.0",
        lifespan=lifespan if coordinator is None else _shared_lifespan(coordinator),
    )
    application.state.publisher = StatusPublisher()
    application.state.coordinator = None
    application.include_router(router)
    return application


app = create_app()

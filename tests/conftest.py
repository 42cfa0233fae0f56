import pytest

import memberflow.persistence as persistence
from memberflow import StepDispatcher, WorkflowEngine
from memberflow.config import EngineConfig, MemberflowConfig
from memberflow.persistence import InMemoryWorkflowRepository
from memberflow.providers import (
    InMemoryDocumentStore,
    InMemoryMailer,
    InMemoryMemberDirectory,
    InMemoryNotificationService,
    InMemoryPointsLedger,
    Member,
    Providers,
)
from memberflow.providers.base import HttpResponse
from memberflow.service import WorkflowService


class RecordingHttpClient:
    """HTTP client double that records requests and replays canned answers."""

    def __init__(self, status_code: int = 200, error: Exception | None = None):
        self.status_code = status_code
        self.error = error
        self.requests = []

    async def request(self, method, url, headers=None, json=None):
        self.requests.append({"method": method, "url": url, "headers": headers, "json": json})
        if self.error is not None:
            raise self.error
        return HttpResponse(status_code=self.status_code, reason="Status")


@pytest.fixture(autouse=True)
def reset_repository_singleton():
    persistence._repository_instance = None
    yield
    persistence._repository_instance = None


@pytest.fixture
def providers() -> Providers:
    return Providers(
        mailer=InMemoryMailer(),
        members=InMemoryMemberDirectory(
            [
                Member(id="m-1", email="ada@example.org", name="Ada"),
                Member(id="m-2", email="grace@example.org", name="Grace"),
                Member(id="m-3", name="No Email"),
            ]
        ),
        points=InMemoryPointsLedger(),
        notifications=InMemoryNotificationService(),
        http=RecordingHttpClient(),
        documents=InMemoryDocumentStore(),
    )


@pytest.fixture
def repository() -> InMemoryWorkflowRepository:
    return InMemoryWorkflowRepository()


@pytest.fixture
def engine(repository, providers) -> WorkflowEngine:
    return WorkflowEngine(repository, StepDispatcher(providers), step_timeout=2.0)


@pytest.fixture
def service(repository, providers) -> WorkflowService:
    config = MemberflowConfig(engine=EngineConfig(step_timeout_seconds=2.0))
    return WorkflowService(repository=repository, providers=providers, config=config)


"""Side-effect collaborators consumed by the step dispatcher."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Union

from pydantic import BaseModel, Field


class EmailMessage(BaseModel):
    to: Union[str, List[str]]
    subject: str
    html: str = ""
    text: Optional[str] = None
    cc: Optional[Union[str, List[str]]] = None
    bcc: Optional[Union[str, List[str]]] = None
    reply_to: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class Member(BaseModel):
    id: str
    email: Optional[str] = None
    name: Optional[str] = None


class HttpResponse(BaseModel):
    status_code: int
    reason: str = ""
    body: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class Mailer(Protocol):
    async def send(self, message: EmailMessage) -> bool:
        """Deliver ``message``; return ``False`` when delivery was refused."""


class MemberDirectory(Protocol):
    async def get_by_id(self, member_id: str) -> Optional[Member]:
        """Look up a member, ``None`` when unknown."""


class PointsLedger(Protocol):
    async def award(
        self,
        member_id: str,
        category: str,
        amount: int,
        description: str,
        related_entity_id: Optional[str] = None,
        related_entity_type: Optional[str] = None,
    ) -> None:
        """Credit points to a member. May raise."""


class NotificationService(Protocol):
    async def create(
        self, member_id: str, title: str, message: str, type: str = "info"
    ) -> None:
        """Create an in-app notification. May raise."""


class HttpClient(Protocol):
    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        json: Any = None,
    ) -> HttpResponse:
        """Issue an HTTP request. Raises on network errors."""


class DocumentStore(Protocol):
    async def patch(
        self, collection: str, document_id: str, fields: Dict[str, Any]
    ) -> None:
        """Merge ``fields`` into a stored document. May raise."""

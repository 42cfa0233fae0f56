"""Collaborators that perform the side effects of workflow steps."""

from __future__ import annotations

from dataclasses import dataclass, field

from .base import (
    DocumentStore,
    EmailMessage,
    HttpClient,
    HttpResponse,
    Mailer,
    Member,
    MemberDirectory,
    NotificationService,
    PointsLedger,
)
from .http import HttpxClient
from .inmemory import (
    InMemoryDocumentStore,
    InMemoryMailer,
    InMemoryMemberDirectory,
    InMemoryNotificationService,
    InMemoryPointsLedger,
)


@dataclass
class Providers:
    """Bundle of collaborators handed to the step dispatcher."""

    mailer: Mailer = field(default_factory=InMemoryMailer)
    members: MemberDirectory = field(default_factory=InMemoryMemberDirectory)
    points: PointsLedger = field(default_factory=InMemoryPointsLedger)
    notifications: NotificationService = field(
        default_factory=InMemoryNotificationService
    )
    http: HttpClient = field(default_factory=HttpxClient)
    documents: DocumentStore = field(default_factory=InMemoryDocumentStore)


__all__ = [
    "DocumentStore",
    "EmailMessage",
    "HttpClient",
    "HttpResponse",
    "HttpxClient",
    "InMemoryDocumentStore",
    "InMemoryMailer",
    "InMemoryMemberDirectory",
    "InMemoryNotificationService",
    "InMemoryPointsLedger",
    "Mailer",
    "Member",
    "MemberDirectory",
    "NotificationService",
    "PointsLedger",
    "Providers",
]

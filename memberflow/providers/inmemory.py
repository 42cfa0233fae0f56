"""In-process providers that record side effects instead of performing them.

Useful for tests and local runs. Nothing leaves the process.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional

from .base import EmailMessage, Member

logger = logging.getLogger(__name__)


class InMemoryMailer:
    def __init__(self) -> None:
        self.sent: List[EmailMessage] = []

    async def send(self, message: EmailMessage) -> bool:
        self.sent.append(message)
        logger.info(f"Recorded email to {message.to}: {message.subject}")
        return True


class InMemoryMemberDirectory:
    def __init__(self, members: Iterable[Member] = ()) -> None:
        self._members: Dict[str, Member] = {m.id: m for m in members}

    def add(self, member: Member) -> None:
        self._members[member.id] = member

    async def get_by_id(self, member_id: str) -> Optional[Member]:
        return self._members.get(member_id)


class InMemoryPointsLedger:
    def __init__(self) -> None:
        self.awards: List[Dict[str, Any]] = []

    async def award(
        self,
        member_id: str,
        category: str,
        amount: int,
        description: str,
        related_entity_id: Optional[str] = None,
        related_entity_type: Optional[str] = None,
    ) -> None:
        self.awards.append(
            {
                "member_id": member_id,
                "category": category,
                "amount": amount,
                "description": description,
                "related_entity_id": related_entity_id,
                "related_entity_type": related_entity_type,
            }
        )

    def balance(self, member_id: str) -> int:
        return sum(a["amount"] for a in self.awards if a["member_id"] == member_id)


class InMemoryNotificationService:
    def __init__(self) -> None:
        self.notifications: List[Dict[str, str]] = []

    async def create(
        self, member_id: str, title: str, message: str, type: str = "info"
    ) -> None:
        self.notifications.append(
            {"member_id": member_id, "title": title, "message": message, "type": type}
        )


class InMemoryDocumentStore:
    def __init__(self) -> None:
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = defaultdict(dict)

    async def patch(
        self, collection: str, document_id: str, fields: Dict[str, Any]
    ) -> None:
        self.collections[collection].setdefault(document_id, {}).update(fields)

    def get(self, collection: str, document_id: str) -> Optional[Dict[str, Any]]:
        return self.collections.get(collection, {}).get(document_id)

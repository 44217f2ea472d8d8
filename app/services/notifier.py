"""
Fire-and-forget event sink for unlock / approve / reject events.

Delivery is not the engine's business: ``emit`` never raises. The database
notifier stores an inbox row per event; a failure there is logged and rolled
back, and the engine state it follows has already been committed.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.notification import Notification

import logging
logger = logging.getLogger("app.notifier")

EVENT_TYPES = ("unlock", "approve", "reject")


@dataclass
class NotifierEvent:
    type: str
    student_id: int
    target_id: Optional[int]
    timestamp: datetime = field(default_factory=datetime.utcnow)
    title: str = ""
    message: str = ""


class Notifier:
    def emit(self, event: NotifierEvent) -> None:
        try:
            self.deliver(event)
        except Exception:
            logger.exception(
                "[notifier] dropped %s event for student=%s target=%s",
                event.type, event.student_id, event.target_id,
            )

    def emit_all(self, events: List[NotifierEvent]) -> None:
        for event in events:
            self.emit(event)

    def deliver(self, event: NotifierEvent) -> None:
        raise NotImplementedError


class NullNotifier(Notifier):
    def deliver(self, event: NotifierEvent) -> None:
        logger.debug("[notifier] %s student=%s target=%s", event.type, event.student_id, event.target_id)


class DbNotifier(Notifier):
    def __init__(self, db: Session):
        self.db = db

    def deliver(self, event: NotifierEvent) -> None:
        if event.type not in EVENT_TYPES:
            raise ValueError(f"unknown notifier event type: {event.type}")
        try:
            self.db.add(
                Notification(
                    user_id=event.student_id,
                    type=event.type,
                    target_id=event.target_id,
                    title=event.title or event.type,
                    message=event.message or "",
                    created_at=event.timestamp,
                )
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

"""Notification delivery boundary."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
import logging

from ..core.enums import DeliveryKind

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """Best-effort notification sink.

    Implementations may drop messages; callers never assume delivery.
    """

    @abstractmethod
    async def send_text_signal(self, message: str) -> None:
        pass

    @abstractmethod
    async def send_photo_signal(self, image_url: str, caption: str) -> None:
        pass

    @abstractmethod
    async def send_milestone_update(self, message: str) -> None:
        pass

    async def close(self):
        pass


@dataclass
class Delivery:
    """One notification handed to a notifier."""
    kind: DeliveryKind
    message: str
    image_url: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)


class LoggingNotifier(Notifier):
    """Writes notifications to the log and keeps a bounded in-memory history."""

    def __init__(self, history_size: int = 500):
        self.history_size = history_size
        self.deliveries: List[Delivery] = []
        logger.info("Logging notifier initialized")

    def _record(self, delivery: Delivery) -> None:
        self.deliveries.append(delivery)
        if len(self.deliveries) > self.history_size:
            self.deliveries = self.deliveries[-self.history_size:]

    async def send_text_signal(self, message: str) -> None:
        self._record(Delivery(DeliveryKind.TEXT, message))
        logger.info(f"[signal] {message}")

    async def send_photo_signal(self, image_url: str, caption: str) -> None:
        self._record(Delivery(DeliveryKind.PHOTO, caption, image_url=image_url))
        logger.info(f"[signal+photo {image_url}] {caption}")

    async def send_milestone_update(self, message: str) -> None:
        self._record(Delivery(DeliveryKind.MILESTONE, message))
        logger.info(f"[milestone] {message}")

    def of_kind(self, kind: DeliveryKind) -> List[Delivery]:
        return [d for d in self.deliveries if d.kind == kind]

"""Admin notifications for reviews that need manual attention."""

import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class AdminNotifier(ABC):
    """Receives reviews that finished with unresolved bottles."""

    @abstractmethod
    async def notify_needs_review(self, review_id: str, errors: list[str]) -> None:
        pass


class LoggingNotifier(AdminNotifier):
    """Default notifier: writes a warning to the log."""

    async def notify_needs_review(self, review_id: str, errors: list[str]) -> None:
        logger.warning(f"Review {review_id} needs admin review ({len(errors)} issue(s)): {'; '.join(errors)}")

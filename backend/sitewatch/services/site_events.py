"""In-process site lifecycle events (added, updated, removed)."""
import enum
import logging
from typing import Awaitable, Callable, List

logger = logging.getLogger(__name__)


class SiteEvent(str, enum.Enum):
    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"


SiteEventHandler = Callable[[SiteEvent, object], Awaitable[None]]


class SiteEventBus:
    """Publishes site registry changes to subscribed handlers.

    Handlers run in subscription order; a failing handler is logged and does
    not prevent the others from running.
    """

    def __init__(self):
        self._handlers: List[SiteEventHandler] = []

    def subscribe(self, handler: SiteEventHandler):
        if handler not in self._handlers:
            self._handlers.append(handler)

    def unsubscribe(self, handler: SiteEventHandler):
        if handler in self._handlers:
            self._handlers.remove(handler)

    async def publish(self, event: SiteEvent, site):
        """Deliver an event to every subscriber."""
        # Copy so handlers may unsubscribe while being called
        for handler in list(self._handlers):
            try:
                await handler(event, site)
            except Exception as e:
                logger.error(f"Site event handler failed for {event.value} site {getattr(site, 'id', '?')}: {e}")

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)


# Global instance
site_events = SiteEventBus()

#!/usr/bin/env python3
"""
Change-Notification Coalescer

Turns the push channel's per-row events into cache updates:

- Direct-patch kinds (accounts) are written to the cache straight from the
  event, with no fetch.
- Debounced kinds collapse a burst of events into one merge-engine sync per
  kind; every new event restarts that kind's window.

Events for other principals are ignored. Channel errors are logged; reconnect
is left to the channel itself.
"""

import logging

from ..core.models import EntityKind
from ..storage.local_cache import LocalCache
from .merge import MergeEngine, sync_timer_key
from .registry import EntityRegistry, NotificationPolicy
from .remote import ChangeChannel, ChangeEvent, ChannelStatus, EventType
from .timers import DelayedTaskScheduler

logger = logging.getLogger(__name__)


class ChangeNotificationCoalescer:
    """Routes change events to direct patches or debounced syncs."""

    def __init__(
        self,
        principal_id: str,
        registry: EntityRegistry,
        engine: MergeEngine,
        cache: LocalCache,
        timers: DelayedTaskScheduler,
        channel: ChangeChannel | None = None,
    ):
        self.principal_id = principal_id
        self._registry = registry
        self._engine = engine
        self._cache = cache
        self._timers = timers
        self._channel = channel
        self._subscribed = False
        self.ignored_count = 0

    def start(self) -> None:
        """Subscribe to the change channel."""
        if self._channel is None or self._subscribed:
            return
        self._channel.subscribe(self.principal_id, self.handle_event, self.handle_status)
        self._subscribed = True
        logger.info(f"Subscribed to change notifications for {self.principal_id}")

    def stop(self) -> None:
        """Cancel pending debounce timers and unsubscribe."""
        for handlers in self._registry:
            self._timers.cancel(sync_timer_key(handlers.kind))
        if self._channel is not None and self._subscribed:
            self._channel.unsubscribe()
        self._subscribed = False

    def handle_event(self, event: ChangeEvent) -> None:
        """Entry point for every pushed event."""
        if not event.belongs_to(self.principal_id):
            self.ignored_count += 1
            return

        kind = self._registry.for_table(event.table)
        if kind is None:
            logger.debug(f"No entity registered for table {event.table}")
            return

        handlers = self._registry[kind]
        if handlers.policy == NotificationPolicy.DIRECT_PATCH:
            handlers.apply_patch(self._cache, event)
            logger.debug(f"Patched {kind.value} from {event.event_type.value} event")
        else:
            if event.event_type == EventType.DELETE and not kind.soft_deletable:
                # An incremental fetch cannot observe a hard delete
                self._engine.require_full_sync(kind)
            self._debounce(kind, handlers.debounce_seconds)

        for related in handlers.also_refresh:
            self._debounce(related, self._registry[related].debounce_seconds)

    def handle_status(self, status: ChannelStatus) -> None:
        if status in (ChannelStatus.CHANNEL_ERROR, ChannelStatus.TIMED_OUT):
            logger.warning(f"Change channel reported {status.value}; waiting for the channel to reconnect")
        else:
            logger.info(f"Change channel status: {status.value}")

    def is_pending(self, kind: EntityKind) -> bool:
        return self._timers.is_pending(sync_timer_key(kind))

    def _debounce(self, kind: EntityKind, delay: float) -> None:
        async def fire() -> None:
            result = await self._engine.sync(kind)
            if not result.success:
                logger.warning(f"Coalesced {kind.value} sync failed: {result.error_message}")

        self._timers.schedule(sync_timer_key(kind), delay, fire)

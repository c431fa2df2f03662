# realtime/router.py
"""
Realtime broadcast router.

Maps a committed mutation to its channel and hands it to every subscriber of
that channel. Delivery is best-effort and at-most-once:
- each subscriber owns a bounded mailbox; a full or closed mailbox drops the
  event for that subscriber only,
- nothing is retried, persisted or replayed to late joiners,
- one dispatch lock keeps per-channel delivery in commit order.
"""
from collections import defaultdict
from functools import lru_cache
from typing import Dict, List, Optional
import logging
import queue
import threading

from django.conf import settings

from core.constants import EVENT_MEMBER_REMOVED, EVENT_PROJECT_DELETED, LOGGER_REALTIME
from core.exceptions import Forbidden
from projects.policies import ProjectPolicy
from .events import BroadcastEvent, channel_for, project_channel

logger = logging.getLogger(LOGGER_REALTIME)

DEFAULT_GLOBAL_CHANNEL = "broadcast"
DEFAULT_MAILBOX_SIZE = 100


class EventPublisher:
    """
    What the mutation services depend on. Implementations must not block the
    caller on slow consumers.
    """

    def publish(self, kind: str, project_id, payload) -> Optional[BroadcastEvent]:
        raise NotImplementedError


class NullPublisher(EventPublisher):
    """Publisher that drops everything (management commands, scripts)."""

    def publish(self, kind, project_id, payload):
        return None


class Subscription:
    def __init__(self, channel: str, user_id=None, maxsize: int = DEFAULT_MAILBOX_SIZE):
        self.channel = channel
        self.user_id = user_id
        self._queue = queue.Queue(maxsize=maxsize)
        self.closed = False

    def __repr__(self):
        return f"<Subscription channel={self.channel!r} user={self.user_id}>"

    def offer(self, event: BroadcastEvent) -> bool:
        if self.closed:
            return False
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            return False
        return True

    def get(self, timeout: Optional[float] = None) -> Optional[BroadcastEvent]:
        try:
            if timeout is None:
                return self._queue.get_nowait()
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> List[BroadcastEvent]:
        events = []
        while True:
            event = self.get()
            if event is None:
                return events
            events.append(event)

    def close(self):
        self.closed = True


class BroadcastRouter(EventPublisher):

    def __init__(self, global_channel: str = DEFAULT_GLOBAL_CHANNEL, mailbox_size: int = DEFAULT_MAILBOX_SIZE):
        self.global_channel = global_channel
        self.mailbox_size = mailbox_size
        self._channels: Dict[str, List[Subscription]] = defaultdict(list)
        self._lock = threading.RLock()

    # ─────────────────────────────────────────────────────────────
    # Subscriptions
    # ─────────────────────────────────────────────────────────────

    def subscribe(self, channel: str, user=None) -> Subscription:
        subscription = Subscription(channel, getattr(user, "pk", user), self.mailbox_size)
        with self._lock:
            self._channels[channel].append(subscription)
        logger.debug(f"Subscribed {subscription!r}")
        return subscription

    def join_global(self, user=None) -> Subscription:
        return self.subscribe(self.global_channel, user)

    def join_project(self, user, project) -> Subscription:
        """Project channels are open to current members only."""
        decision = ProjectPolicy.can_join_channel(user, project)
        if not decision:
            raise Forbidden(decision.reason)
        return self.subscribe(project_channel(project.pk), user)

    def unsubscribe(self, subscription: Subscription):
        with self._lock:
            subscribers = self._channels.get(subscription.channel)
            if subscribers and subscription in subscribers:
                subscribers.remove(subscription)
                if not subscribers:
                    del self._channels[subscription.channel]
        subscription.close()

    def subscribers(self, channel: str) -> List[Subscription]:
        with self._lock:
            return list(self._channels.get(channel, ()))

    # ─────────────────────────────────────────────────────────────
    # Publishing
    # ─────────────────────────────────────────────────────────────

    def publish(self, kind: str, project_id, payload) -> BroadcastEvent:
        channel = channel_for(kind, project_id, self.global_channel)
        event = BroadcastEvent(kind=kind, channel=channel, payload=payload)

        with self._lock:
            subscribers = list(self._channels.get(channel, ()))
            delivered = 0
            for subscription in subscribers:
                if subscription.offer(event):
                    delivered += 1
                else:
                    logger.warning(
                        f"Dropped {kind} for {subscription!r}: mailbox full or closed"
                    )

            if kind == EVENT_MEMBER_REMOVED:
                self._evict_user(channel, payload.get("userId"))
            elif kind == EVENT_PROJECT_DELETED:
                self._close_channel(channel)

        logger.info(f"Broadcast {kind} on channel={channel} to {delivered}/{len(subscribers)} subscribers")
        return event

    def _evict_user(self, channel: str, user_id):
        subscribers = self._channels.get(channel)
        if not subscribers or user_id is None:
            return
        keep = []
        for subscription in subscribers:
            if str(subscription.user_id) == str(user_id):
                subscription.close()
            else:
                keep.append(subscription)
        if keep:
            self._channels[channel] = keep
        else:
            del self._channels[channel]

    def _close_channel(self, channel: str):
        for subscription in self._channels.pop(channel, ()):
            subscription.close()


@lru_cache(maxsize=None)
def get_router() -> BroadcastRouter:
    """Process-wide router built from settings.REALTIME; views inject it into services."""
    options = getattr(settings, "REALTIME", {})
    return BroadcastRouter(
        global_channel=options.get("GLOBAL_CHANNEL", DEFAULT_GLOBAL_CHANNEL),
        mailbox_size=options.get("MAILBOX_SIZE", DEFAULT_MAILBOX_SIZE),
    )

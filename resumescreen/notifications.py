"""Broadcast pipeline events to live listeners over Redis pub/sub."""
import json
import logging
from typing import Any, Callable, Dict, Iterator, Optional

from . import config

logger = logging.getLogger(__name__)

SCREENING_COMPLETE = "screening:complete"


class NotificationChannel:
    """
    Fire-and-forget broadcast to every subscriber connected right now.

    Build one per process, call initialize() at start-up and hand the
    instance to whatever publishes. Publishing before initialize(), or
    while Redis is down, is logged and dropped; it never raises.
    """

    def __init__(
        self,
        channel: Optional[str] = None,
        client_factory: Optional[Callable[[], Any]] = None,
    ):
        self.channel = channel or config.NOTIFICATION_CHANNEL
        self._client_factory = client_factory or config.get_redis
        self._client = None

    @property
    def initialized(self) -> bool:
        return self._client is not None

    def initialize(self) -> "NotificationChannel":
        """Create the connection once; later calls are no-ops."""
        if self._client is None:
            self._client = self._client_factory()
            logger.info(f"Notification channel ready on '{self.channel}'")
        return self

    def broadcast(self, event: str, data: Dict[str, Any]) -> int:
        """Publish one event; returns how many subscribers received it."""
        if self._client is None:
            logger.error(
                f"Notification channel not initialized; dropping '{event}' {data}. "
                "Call initialize() first."
            )
            return 0

        message = json.dumps({"event": event, "data": data})
        try:
            receivers = self._client.publish(self.channel, message)
        except Exception as e:
            logger.error(f"Failed to broadcast '{event}' {data}: {e}")
            return 0

        logger.info(f"Emitted {event} for {data} to {receivers} subscribers")
        return receivers

    def screening_complete(self, job_id: str) -> int:
        return self.broadcast(SCREENING_COMPLETE, {"jobId": job_id})

    def listen(self, timeout: float = 1.0) -> Iterator[Optional[Dict[str, Any]]]:
        """
        Yield events published from now on.

        Yields None every `timeout` seconds with no traffic so callers can
        check for disconnects.
        """
        self.initialize()
        pubsub = self._client.pubsub(ignore_subscribe_messages=True)
        pubsub.subscribe(self.channel)
        try:
            while True:
                message = pubsub.get_message(timeout=timeout)
                if message is None:
                    yield None
                    continue
                try:
                    yield json.loads(message["data"])
                except (TypeError, ValueError):
                    logger.warning(f"Ignoring malformed message on '{self.channel}'")
        finally:
            pubsub.close()

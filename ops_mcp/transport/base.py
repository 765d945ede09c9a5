"""Transport lifecycle shared by the stdio and HTTP transports."""

from __future__ import annotations

import abc
import enum
import logging

logger = logging.getLogger(__name__)


class TransportState(enum.Enum):
    CREATED = "created"
    STARTED = "started"
    STOPPED = "stopped"


class Transport(abc.ABC):
    """A way of exposing the tool registry to clients.

    ``start()`` serves until stopped and returns normally on a clean stop;
    ``stop()`` is graceful and safe to call more than once.
    """

    name: str = ""

    def __init__(self) -> None:
        self.state = TransportState.CREATED

    @property
    def is_running(self) -> bool:
        return self.state is TransportState.STARTED

    @abc.abstractmethod
    async def start(self) -> None: ...

    @abc.abstractmethod
    async def stop(self, timeout: float | None = None) -> None: ...

    def _mark_started(self) -> None:
        self.state = TransportState.STARTED
        logger.info("transport started", extra={"transport": self.name})

    def _mark_stopped(self) -> None:
        if self.state is not TransportState.STOPPED:
            self.state = TransportState.STOPPED
            logger.info("transport stopped", extra={"transport": self.name})

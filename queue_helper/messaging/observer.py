"""
Observer Module
===============
Listener registry that fans decoded messages out to callbacks.
"""

import inspect
import threading
from typing import Awaitable, Callable, List, Optional, Union

from ..core.logging_config import get_logger

from .message import Envelope

logger = get_logger(__name__)

MessageListener = Callable[[Envelope], Optional[Union[None, Awaitable[None]]]]


class MessageObserver:
    """
    Ordered list of listeners notified for every consumed message.

    Listeners may be plain functions or coroutine functions. They are called
    one after another in subscription order; a failing listener is logged
    and skipped so the rest still run. Subscribing while a dispatch is in
    progress is safe: dispatch works on a snapshot of the list.
    """

    def __init__(self):
        self._listeners: List[MessageListener] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._listeners)

    @property
    def listeners(self) -> List[MessageListener]:
        with self._lock:
            return list(self._listeners)

    def subscribe(self, listener: MessageListener) -> MessageListener:
        """
        Append a listener.

        Returns the listener so this can be used as a decorator.
        """
        with self._lock:
            self._listeners.append(listener)
        logger.debug(f"Subscribed listener {_listener_name(listener)}")
        return listener

    def unsubscribe(self, listener: MessageListener) -> bool:
        with self._lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                return False
        logger.debug(f"Unsubscribed listener {_listener_name(listener)}")
        return True

    async def notify(self, message: Envelope) -> int:
        """
        Deliver a message to every subscribed listener.

        Args:
            message: Decoded envelope

        Returns:
            int: Number of listeners that completed without error
        """
        delivered = 0
        for listener in self.listeners:
            try:
                result = listener(message)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception as e:
                logger.error(
                    f"Listener {_listener_name(listener)} failed: {e}",
                    exc_info=e,
                )
        return delivered


def _listener_name(listener: MessageListener) -> str:
    return getattr(listener, "__qualname__", None) or repr(listener)

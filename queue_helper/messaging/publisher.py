"""
Publisher Module
================
Single-strategy messaging facade.
"""

from typing import Dict, Iterable, Optional

from ..core.logging_config import get_logger

from .broker import MessagingStrategy
from .message import MessageModel

logger = get_logger(__name__)


class MessagingFacade:
    """
    Thin wrapper exposing one ``send`` call over a concrete strategy.

    Lets calling code depend on the strategy contract only, without alias
    bookkeeping.
    """

    def __init__(self, strategy: MessagingStrategy):
        self.strategy = strategy

    async def send(
        self,
        target: str,
        message: MessageModel,
        priority: Optional[int] = None,
        delivery_mode: Optional[int] = None,
    ) -> bool:
        """
        Send a message to a queue or topic.

        Args:
            target: Queue or topic name
            message: Payload to publish
            priority: Message priority (defaults to the strategy default)
            delivery_mode: Delivery mode (defaults to the strategy default)

        Returns:
            bool: True if the broker accepted the message
        """
        return await self.strategy.send(target, message, priority, delivery_mode)

    async def broadcast(
        self,
        targets: Iterable[str],
        message: MessageModel,
        priority: Optional[int] = None,
        delivery_mode: Optional[int] = None,
    ) -> Dict[str, bool]:
        """
        Send the same message to several queues or topics.

        Args:
            targets: Queue or topic names
            message: Payload to publish
            priority: Message priority
            delivery_mode: Delivery mode

        Returns:
            Dict[str, bool]: Send result per target
        """
        results = {}
        for target in targets:
            results[target] = await self.send(target, message, priority, delivery_mode)

        failed = [target for target, sent in results.items() if not sent]
        if failed:
            logger.warning(f"Broadcast had {len(failed)} failed targets: {failed}")

        return results

import asyncio
import logging
import sys

from queue_helper.core import Config, EnvironmentSource, get_config, setup_logging
from queue_helper.messaging import (
    BrokerFacade,
    ConnectionRegistry,
    EmailMessage,
    Envelope,
    MessageObserver,
    MessagingFacade,
    RabbitMQConsumer,
)

QUEUE = "queue-email-message-sending"
ALIAS = "email"

logger = logging.getLogger("queue_helper_runner")


def configure_logging(config: Config) -> None:
    setup_logging(
        level=config.logging.level,
        log_format=config.logging.format,
        output=config.logging.output,
        file_path=config.logging.file_path,
        max_file_size=config.logging.max_file_size,
        backup_count=config.logging.backup_count,
    )


def print_email(message: Envelope) -> None:
    email = EmailMessage.from_json(message.content)
    logger.info(f"Email from {email.sender} to {', '.join(email.recipients)}: {email.subject}")


async def main():
    email = (
        EmailMessage.builder()
        .sender("example@example.com")
        .recipients(["recipient1@example.com", "recipient2@example.com"])
        .cc_recipients(["cc1@example.com"])
        .subject("Subject of the email")
        .body("Body of the email")
        .is_html()
        .build()
    )

    async with ConnectionRegistry() as registry:
        brokers = BrokerFacade(registry)
        strategy = await brokers.connect_from_source(ALIAS, EnvironmentSource())

        messaging = MessagingFacade(strategy)
        await messaging.send(QUEUE, email, priority=5, delivery_mode=1)

        observer = MessageObserver()
        observer.subscribe(print_email)

        consumer = RabbitMQConsumer(observer, brokers.get(ALIAS), QUEUE)
        await consumer.start_listening()
        logger.info("Consumer running. Press Ctrl+C to stop.")

        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            pass
        finally:
            logger.info("Shutting down consumer...")
            await consumer.stop()
            await brokers.disconnect_all()


if __name__ == "__main__":
    configure_logging(get_config())
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        sys.exit(0)

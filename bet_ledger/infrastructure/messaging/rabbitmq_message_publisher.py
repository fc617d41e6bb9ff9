"""RabbitMQ message publisher implementation"""
import json
import logging
import time
from threading import Lock
from typing import Any, Dict, Optional

import pika
import sentry_sdk

from bet_ledger.application.ports.message_publisher_port import MessagePublisherPort

logger = logging.getLogger(__name__)

NOTIFICATIONS_QUEUE = 'notifications.bet_events'


class RabbitMQMessagePublisher(MessagePublisherPort):
    """RabbitMQ implementation of message publisher.

    Events go to a durable topic exchange with the event type as routing
    key (``bet.created``, ``bet.resolved``, ...). A notifications queue is
    bound to ``bet.#`` for the notification dispatcher.
    """

    def __init__(self, rabbitmq_url: str, exchange: str = 'betting', connect: bool = True):
        self.rabbitmq_url = rabbitmq_url
        self.exchange = exchange
        self.connection: Optional[pika.BlockingConnection] = None
        self.channel = None
        self.lock = Lock()
        if connect:
            self._connect()

    def _connect(self):
        """Establish connection to RabbitMQ"""
        try:
            params = pika.URLParameters(self.rabbitmq_url)
            self.connection = pika.BlockingConnection(params)
            self.channel = self.connection.channel()

            self.channel.exchange_declare(
                exchange=self.exchange,
                exchange_type='topic',
                durable=True
            )

            self.channel.queue_declare(
                queue=NOTIFICATIONS_QUEUE,
                durable=True
            )

            self.channel.queue_bind(
                exchange=self.exchange,
                queue=NOTIFICATIONS_QUEUE,
                routing_key='bet.#'
            )

            logger.info("RabbitMQ connection established")

        except Exception as e:
            logger.error(f"Failed to connect to RabbitMQ: {e}")
            sentry_sdk.capture_exception(e)
            self.connection = None
            self.channel = None

    def publish_event(self, event_type: str, payload: Dict[str, Any]) -> None:
        """Publish a bet lifecycle event; failures are logged, never raised"""
        with self.lock:
            try:
                if not self.connection or self.connection.is_closed:
                    self._connect()

                if not self.channel:
                    logger.error(f"No RabbitMQ channel available, dropping {event_type}")
                    return

                message = {
                    'type': event_type,
                    'data': payload,
                    'timestamp': time.time()
                }

                self.channel.basic_publish(
                    exchange=self.exchange,
                    routing_key=event_type,
                    body=json.dumps(message),
                    properties=pika.BasicProperties(
                        content_type='application/json',
                        delivery_mode=2  # persistent
                    )
                )

                logger.info(f"Published {event_type} for bet {payload.get('bet_id')}")

            except Exception as e:
                logger.error(f"Failed to publish {event_type}: {e}")
                sentry_sdk.capture_exception(e)
                self.connection = None
                self.channel = None

    def close(self):
        """Close RabbitMQ connection"""
        if self.connection and not self.connection.is_closed:
            self.connection.close()
            logger.info("RabbitMQ connection closed")

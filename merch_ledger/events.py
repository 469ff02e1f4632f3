"""
Ledger event publishing over RabbitMQ.

Events go out after the ledger transaction has committed and never feed
back into it: a broker outage loses notifications, not coins.
"""

import json
import logging

import aio_pika
from aio_pika.exceptions import AMQPError

from . import config

logger = logging.getLogger(__name__)

EXCHANGE = "bank"
PURCHASE_COMPLETED = "purchase.completed"
TRANSFER_COMPLETED = "transfer.completed"

connection = channel = exchange = None


async def connect(url: str = None):
    global connection, channel, exchange
    url = url or config.RABBITMQ_URL
    if not url:
        logger.info("RABBITMQ_URL not set, ledger events disabled")
        return
    connection = await aio_pika.connect_robust(url)
    channel = await connection.channel()
    exchange = await channel.declare_exchange(EXCHANGE, aio_pika.ExchangeType.TOPIC)


async def close():
    global connection, channel, exchange
    if connection:
        await connection.close()
    connection = channel = exchange = None


async def publish(key: str, payload: dict):
    if exchange is None:
        return
    message = aio_pika.Message(
        body=json.dumps({"type": key, **payload}).encode(),
        content_type="application/json",
        delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
    )
    try:
        await exchange.publish(message, routing_key=key)
    except (AMQPError, ConnectionError):
        logger.exception("failed to publish %s", key)

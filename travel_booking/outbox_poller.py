"""
Publishes booking lifecycle events recorded in ``outbox_events`` to Kafka.

Refund and notification services react to ``BOOKING_CREATED`` and
``BOOKING_CANCELLED`` events instead of being called from the request
path.  Rows are deleted once Kafka acknowledges them; rows that fail to
send stay pending and are retried on the next poll.
"""
import asyncio
import logging
from typing import Optional

from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaConnectionError, KafkaError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.sql import select

from .config import settings
from .database import SessionLocal
from .models import OutboxEvent

logger = logging.getLogger("outbox_poller")

BATCH_SIZE = 100


async def connect_producer(retry_delay: int = 5, max_retries: int = 5) -> Optional[AIOKafkaProducer]:
    """Start a Kafka producer, retrying while the broker is unreachable."""
    for attempt in range(1, max_retries + 1):
        producer = AIOKafkaProducer(bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS)
        try:
            await producer.start()
            logger.info(f"Outbox poller connected to Kafka on attempt {attempt}.")
            return producer
        except KafkaConnectionError as e:
            await producer.stop()
            logger.warning(f"Kafka connection attempt {attempt}/{max_retries} failed: {e}")
            if attempt < max_retries:
                await asyncio.sleep(retry_delay)

    logger.error("Outbox poller failed to connect to Kafka after multiple retries.")
    return None


async def publish_pending_events(db: Session, producer: AIOKafkaProducer) -> int:
    """Send one batch of pending events; returns how many were published."""
    stmt = select(OutboxEvent).where(
        OutboxEvent.status == "PENDING"
    ).order_by(OutboxEvent.id).limit(BATCH_SIZE).with_for_update()
    pending_events = db.execute(stmt).scalars().all()
    if not pending_events:
        return 0

    logger.info(f"Found {len(pending_events)} pending events in outbox.")
    published = 0
    for event in pending_events:
        try:
            await producer.send_and_wait(topic=event.topic, value=event.payload.encode("utf-8"))
        except KafkaError as e:
            # Left in the outbox for the next poll
            logger.error(f"Failed to send outbox event {event.id} to Kafka: {e}")
            continue
        db.delete(event)
        published += 1

    if published:
        db.commit()
        logger.info(f"Published {published} booking events.")
    return published


async def run_outbox_poller(
        poll_interval: int = 5,
        session_factory: sessionmaker = SessionLocal,
):
    """
    Main background loop: publish pending events every ``poll_interval`` seconds.
    """
    logger.info("Starting outbox poller...")
    producer = await connect_producer()
    if producer is None:
        return

    try:
        while True:
            db: Session = session_factory()
            try:
                await publish_pending_events(db, producer)
            except SQLAlchemyError as e:
                logger.error(f"Error in outbox poller loop: {e}")
                db.rollback()
            finally:
                db.close()

            await asyncio.sleep(poll_interval)
    except asyncio.CancelledError:
        logger.info("Outbox poller task cancelled.")
    finally:
        logger.info("Stopping Kafka producer...")
        await producer.stop()
        logger.info("Outbox poller shut down.")

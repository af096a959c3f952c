"""
Infrastructure Layer - Outbox Processor

The Outbox Processor is the relay between the outbox table and the
workflow engine:
1. Reads undelivered workflow signals from the outbox
2. Dispatches them to the Celery event router
3. Marks them as delivered

This implements the "Transactional Outbox" pattern for reliable
signal delivery with at-least-once semantics. Consumers de-duplicate on
the signal id.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, List, Dict, Any

from ..application.ports import SignalDispatcher, UnitOfWork
from ..domain.events import utcnow
from ..domain.exceptions import SignalDeliveryError


logger = logging.getLogger(__name__)

EVENT_ROUTER_TASK = "auditguard.workflow.dispatch_event"


class OutboxProcessor:
    """
    Delivers workflow signals from the outbox.

    Implements:
    - In-line delivery of specific messages right after a request
    - Batched sweeps of everything still undelivered
    - Retry counting with dead letter handling after max retries
    - Cleanup of old delivered messages

    Usage:
        processor = OutboxProcessor(uow, dispatcher)
        await processor.start()  # Runs until stopped
    """

    def __init__(
        self,
        uow: UnitOfWork,
        dispatcher: SignalDispatcher,
        poll_interval_seconds: float = 1.0,
        batch_size: int = 100,
        max_retries: int = 5,
        cleanup_interval_hours: int = 24,
        retention_hours: int = 72,
    ):
        self.uow = uow
        self.dispatcher = dispatcher
        self.poll_interval = poll_interval_seconds
        self.batch_size = batch_size
        self.max_retries = max_retries
        self.cleanup_interval = timedelta(hours=cleanup_interval_hours)
        self.retention_period = timedelta(hours=retention_hours)

        self._running = False
        self._last_cleanup = datetime.min.replace(tzinfo=timezone.utc)

    async def start(self) -> None:
        """Start the processor loop."""
        logger.info("Starting outbox processor")
        self._running = True

        while self._running:
            try:
                processed = await self.sweep()

                if processed == 0:
                    await asyncio.sleep(self.poll_interval)

            except Exception as e:
                logger.error(f"Error in outbox processor: {e}")
                await asyncio.sleep(self.poll_interval * 2)

    async def stop(self) -> None:
        """Stop the processor gracefully."""
        logger.info("Stopping outbox processor")
        self._running = False

    async def deliver(self, message_ids: List[Optional[str]]) -> int:
        """
        Deliver specific outbox messages now.

        Best effort: failures are logged and left to the next sweep.
        Returns the number of messages taken out of the outbox.
        """
        message_ids = [m for m in message_ids if m]
        if not message_ids:
            return 0

        try:
            async with self.uow:
                messages = await self.uow.outbox.get_by_ids(message_ids)
            return await self._process(messages)
        except Exception as e:
            logger.error(f"In-line signal delivery failed, leaving {message_ids} to the sweep: {e}")
            return 0

    async def sweep(self) -> int:
        """Process one batch of undelivered messages. Returns count processed."""
        async with self.uow:
            messages = await self.uow.outbox.get_unpublished(self.batch_size)

        processed = await self._process(messages) if messages else 0

        if utcnow() - self._last_cleanup > self.cleanup_interval:
            await self._cleanup_old_messages()
            self._last_cleanup = utcnow()

        return processed

    async def _process(self, messages: List[Dict[str, Any]]) -> int:
        if not messages:
            return 0

        if not await self.dispatcher.is_connected():
            logger.warning("Workflow broker not reachable, skipping batch")
            return 0

        logger.debug(f"Processing {len(messages)} outbox messages")

        delivered_ids = []

        for message in messages:
            if message.get('retry_count', 0) >= self.max_retries:
                logger.error(
                    f"Message {message['id']} exceeded max retries, "
                    f"moving to dead letter"
                )
                self._handle_dead_letter(message)
                delivered_ids.append(message['id'])
                continue

            try:
                await self.dispatcher.send(
                    message['event_type'],
                    message['payload'],
                    signal_id=message.get('event_id'),
                )
                delivered_ids.append(message['id'])
            except Exception as e:
                await self._handle_delivery_error(message, str(e))

        if delivered_ids:
            async with self.uow:
                await self.uow.outbox.mark_as_published(delivered_ids)
                await self.uow.commit()
            logger.info(f"Delivered {len(delivered_ids)} workflow signals")

        return len(delivered_ids)

    async def _handle_delivery_error(self, message: Dict[str, Any], error: str) -> None:
        """Record a failed attempt; the message stays in the outbox."""
        failure = SignalDeliveryError(message['event_type'], error, message_id=message['id'])
        payload = message.get('payload') or {}
        logger.error(
            failure.message,
            extra={"context": {
                "code": failure.code,
                "message_id": message['id'],
                "job_id": payload.get('jobId'),
                "company_id": payload.get('companyId'),
                "audit_ids": payload.get('auditIds'),
                "retry_count": message.get('retry_count', 0) + 1,
            }},
        )
        try:
            async with self.uow:
                await self.uow.outbox.increment_retry(message['id'], error)
                await self.uow.commit()
        except Exception as e:
            logger.error(f"Could not record retry for outbox message {message['id']}: {e}")

    def _handle_dead_letter(self, message: Dict[str, Any]) -> None:
        """The message is taken out of rotation; the log line is what remains of it."""
        logger.error(
            f"Dead letter: signal={message['event_type']}, "
            f"aggregate={message['aggregate_type']}/{message['aggregate_id']}, "
            f"error={message.get('last_error') or 'unknown'}",
            extra={"context": {"message_id": message['id'], "payload": message.get('payload')}},
        )

    async def _cleanup_old_messages(self) -> None:
        """Clean up old delivered messages."""
        cutoff = utcnow() - self.retention_period
        async with self.uow:
            deleted = await self.uow.outbox.delete_published(cutoff)
            await self.uow.commit()
        if deleted:
            logger.info(f"Cleaned up {deleted} old outbox messages")


class CelerySignalDispatcher(SignalDispatcher):
    """
    Celery implementation of SignalDispatcher.

    Every signal is enqueued to the event router task, which hands it to
    whatever handles that signal name.
    """

    def __init__(self, celery_app, queue: str = "auditguard.workflow"):
        self.app = celery_app
        self.queue = queue

    async def send(self, name: str, data: Dict[str, Any], signal_id: Optional[str] = None) -> None:
        """Enqueue one signal."""
        await asyncio.to_thread(
            self.app.send_task,
            EVENT_ROUTER_TASK,
            kwargs={"name": name, "data": data},
            queue=self.queue,
            task_id=signal_id,
        )
        logger.debug(f"Dispatched signal {name} ({signal_id})")

    async def is_connected(self) -> bool:
        """Check that the broker accepts connections."""
        def _probe() -> bool:
            with self.app.connection_for_write() as conn:
                conn.ensure_connection(max_retries=1)
            return True

        try:
            return await asyncio.to_thread(_probe)
        except Exception as e:
            logger.warning(f"Celery broker not reachable: {e}")
            return False

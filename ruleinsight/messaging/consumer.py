"""RabbitMQ consumer for rule execution telemetry."""

import json
from typing import Any

import aio_pika
from aio_pika import IncomingMessage
from aio_pika.abc import AbstractRobustConnection
from pydantic import BaseModel, Field, ValidationError

from ruleinsight.analytics.performance import PerformanceAnalytics
from ruleinsight.core.config import Settings, get_settings
from ruleinsight.core.logging import get_logger
from ruleinsight.models.execution import ExecutionOutcome
from ruleinsight.observability.metrics import TELEMETRY_MESSAGES

logger = get_logger(__name__)


class TelemetryMessage(BaseModel):
    """Execution report published by the rule engine."""

    rule_id: str = Field(..., min_length=1)
    execution_time_ms: float = Field(..., ge=0)
    success: bool = True
    triggered: bool = False
    error: str | None = None
    email_id: str | None = None
    context: dict[str, Any] = Field(default_factory=dict)


class TelemetryConsumer:
    """Feeds queued execution telemetry into performance analytics."""

    def __init__(self, analytics: PerformanceAnalytics, settings: Settings | None = None):
        """Initialize consumer.

        Args:
            analytics: Receiver of execution records
            settings: Application settings
        """
        self._settings = settings or get_settings()
        self._analytics = analytics
        self._connection: AbstractRobustConnection | None = None
        self._should_stop = False

    async def connect(self) -> None:
        """Connect to RabbitMQ."""
        self._connection = await aio_pika.connect_robust(
            self._settings.rabbitmq_url,
            reconnect_interval=5,
        )
        logger.info("Connected to RabbitMQ")

    async def disconnect(self) -> None:
        """Disconnect from RabbitMQ."""
        if self._connection:
            await self._connection.close()
            self._connection = None
            logger.info("Disconnected from RabbitMQ")

    async def start_consuming(self) -> None:
        """Start consuming messages from the telemetry queue."""
        if not self._connection:
            await self.connect()

        channel = await self._connection.channel()
        await channel.set_qos(prefetch_count=10)

        queue = await channel.declare_queue(
            self._settings.rabbitmq_queue,
            durable=True,
        )

        logger.info("Starting telemetry consumption", queue=self._settings.rabbitmq_queue)

        async with queue.iterator() as queue_iter:
            async for message in queue_iter:
                if self._should_stop:
                    break
                await self._process_message(message)

    async def _process_message(self, message: IncomingMessage) -> None:
        async with message.process():
            await self.handle_body(message.body, message_id=message.message_id)

    async def handle_body(self, body: bytes, message_id: str | None = None) -> str:
        """Record the execution carried by one message body.

        Malformed messages are logged and dropped.

        Args:
            body: Raw message body
            message_id: Broker message ID for logging

        Returns:
            Processing status: ``recorded``, ``invalid`` or ``error``
        """
        try:
            telemetry = TelemetryMessage.model_validate(json.loads(body.decode()))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error("Invalid JSON message", message_id=message_id, error=str(e))
            status = "invalid"
        except ValidationError as e:
            logger.warning(
                "Telemetry message rejected",
                message_id=message_id,
                errors=e.error_count(),
            )
            status = "invalid"
        else:
            try:
                await self._analytics.record_execution(
                    telemetry.rule_id,
                    ExecutionOutcome(
                        success=telemetry.success,
                        triggered=telemetry.triggered,
                        error=telemetry.error,
                        email_id=telemetry.email_id,
                    ),
                    telemetry.execution_time_ms,
                    telemetry.context,
                )
                status = "recorded"
            except Exception as e:
                logger.error("Error processing telemetry", error=str(e), exc_info=True)
                status = "error"

        TELEMETRY_MESSAGES.labels(status=status).inc()
        return status

    def stop(self) -> None:
        """Signal consumer to stop."""
        self._should_stop = True
        logger.info("Consumer stop requested")

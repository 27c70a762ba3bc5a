"""
NATS JetStream Client for Python Microservices
Provides event-driven communication between the campaign service and its
sibling services (clip ingestion, payments, stats).

This module wraps the nats-py JetStream API with the platform Event
envelope, per-prefix stream mapping, retrying publishes and durable
manual-ack consumers.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Union, TYPE_CHECKING

import nats
from nats.aio.client import Client as NATSClient
from nats.aio.msg import Msg
from nats.errors import NoRespondersError, TimeoutError as NATSTimeoutError
from nats.js.api import AckPolicy, ConsumerConfig, DeliverPolicy
from nats.js.errors import Error as JetStreamError, NoStreamResponseError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

if TYPE_CHECKING:
    from core.config_manager import ConfigManager


class DecimalEncoder(json.JSONEncoder):
    """Custom JSON encoder that handles Decimal and datetime types"""
    def default(self, obj):
        if isinstance(obj, Decimal):
            return float(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super().default(obj)


logger = logging.getLogger(__name__)


class ServiceSource(Enum):
    """Service sources"""

    CAMPAIGN_SERVICE = "campaign_service"
    CLIP_SERVICE = "clip_service"
    PAYMENT_SERVICE = "payment_service"
    STATS_SERVICE = "stats_service"
    GATEWAY = "api_gateway"


def _enum_value(value: Union[Enum, str]) -> str:
    return value.value if isinstance(value, Enum) else value


class Event:
    """Event envelope"""

    def __init__(
        self,
        event_type: Union[Enum, str],
        source: Union[ServiceSource, str],
        data: Dict[str, Any],
        subject: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ):
        self.id = str(uuid.uuid4())
        self.type = _enum_value(event_type)
        self.source = _enum_value(source)
        self.data = data
        self.subject = subject
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.metadata = metadata or {}
        self.version = "1.0.0"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "source": self.source,
            "subject": self.subject,
            "timestamp": self.timestamp,
            "data": self.data,
            "metadata": self.metadata,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        event = cls.__new__(cls)
        event.id = data.get("id")
        event.type = data.get("type")
        event.source = data.get("source")
        event.subject = data.get("subject")
        event.timestamp = data.get("timestamp")
        event.data = data.get("data", {})
        event.metadata = data.get("metadata", {})
        event.version = data.get("version", "1.0.0")
        return event

    @classmethod
    def from_raw(cls, subject: str, event_id: str, data: Dict[str, Any]) -> "Event":
        """Wrap a bare JSON payload published without the envelope"""
        event = cls.__new__(cls)
        event.id = event_id
        event.type = subject
        event.source = data.get("source", "unknown")
        event.subject = subject
        event.timestamp = data.get("timestamp", datetime.now(timezone.utc).isoformat())
        event.data = data
        event.metadata = {}
        event.version = "1.0.0"
        return event

    @staticmethod
    def is_envelope(data: Dict[str, Any]) -> bool:
        return "type" in data and "source" in data and "data" in data


EventHandler = Callable[[Event], Awaitable[None]]


class NATSEventBus:
    """
    NATS JetStream event bus.

    Publishing is retried on transient transport errors and reported as a
    boolean. Consumers are durable with manual acknowledgement: a handler
    that returns acks the message, a handler that raises naks it with an
    exponential redelivery delay, and the consumer's ``max_deliver`` bounds
    how often a message comes back.
    """

    def __init__(
        self,
        service_name: str,
        config: Optional["ConfigManager"] = None,
        max_deliver: int = 5,
        retry_base_seconds: int = 2,
        ack_wait_seconds: int = 30,
    ):
        """
        Initialize NATS Event Bus.

        Args:
            service_name: Name of the service (used as the connection name)
            config: Optional ConfigManager instance for service discovery
            max_deliver: Delivery attempts per message before the server gives up
            retry_base_seconds: Base of the exponential nak delay
            ack_wait_seconds: Time the server waits for an ack before redelivery
        """
        from core.config_manager import ConfigManager

        self.service_name = service_name

        # Priority: environment variables → settings → default fallback
        if config is None:
            config = ConfigManager(service_name)

        self.host, self.port = config.discover_service(
            service_name='nats_service',
            default_host='nats',
            default_port=4222,
            env_host_key='NATS_HOST',
            env_port_key='NATS_PORT'
        )
        self.url = config.get("NATS_URL") or f"nats://{self.host}:{self.port}"

        self.max_deliver = max_deliver
        self.retry_base_seconds = retry_base_seconds
        self.ack_wait_seconds = ack_wait_seconds

        self._nc: Optional[NATSClient] = None
        self._js = None
        self._subscriptions: Dict[str, Any] = {}  # pattern -> JetStream subscription
        self._known_streams: set = set()
        self._is_connected = False

        logger.info(f"NATS EventBus initialized: {self.url}")

    async def connect(self):
        """Connect to NATS and open a JetStream context"""
        try:
            self._nc = await nats.connect(servers=[self.url], name=self.service_name)
            self._js = self._nc.jetstream()
            self._is_connected = True
            logger.info(f"Connected to NATS as {self.service_name}")
        except Exception as e:
            logger.error(f"Failed to connect to NATS at {self.url}: {e}")
            raise

    def _get_stream_name_for_event(self, event_type: str) -> str:
        """
        Determine the JetStream stream name based on event type.

        Mapping:
        - campaign.* -> campaign-stream
        - clip.* -> clip-stream
        - stats.* -> stats-stream
        - payment.* -> payment-stream
        """
        prefix = event_type.split('.')[0]

        stream_mappings = {
            "campaign": "campaign-stream",
            "clip": "clip-stream",
            "stats": "stats-stream",
            "payment": "payment-stream",
        }

        return stream_mappings.get(prefix, f"{prefix}-stream")

    async def _ensure_stream(self, subject: str) -> str:
        """Create the stream for a subject's prefix if it does not exist yet"""
        stream_name = self._get_stream_name_for_event(subject)
        if stream_name in self._known_streams:
            return stream_name

        prefix = subject.split('.')[0]
        try:
            await self._js.add_stream(name=stream_name, subjects=[f"{prefix}.>"])
        except JetStreamError as e:
            # Already exists with a different config, or owned by another service
            logger.debug(f"Stream creation note for {stream_name}: {e}")
        self._known_streams.add(stream_name)
        return stream_name

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
        retry=retry_if_exception_type((NATSTimeoutError, NoRespondersError, NoStreamResponseError)),
        reraise=True,
    )
    async def _publish_with_retry(self, subject: str, payload: bytes, event_id: str):
        # Nats-Msg-Id lets the server drop duplicates caused by our own retries
        return await self._js.publish(subject, payload, headers={"Nats-Msg-Id": event_id})

    async def publish_event(self, event: Event) -> bool:
        """
        Publish an event to NATS JetStream.

        The subject is the event type (e.g. "campaign.funded"); the stream is
        derived from its prefix and created on first use.

        Returns:
            True when the server acknowledged the message
        """
        if not self._is_connected or not self._js:
            logger.error("Not connected to NATS")
            return False

        try:
            subject = event.type
            data = json.dumps(event.to_dict(), cls=DecimalEncoder).encode()
            stream_name = await self._ensure_stream(subject)

            ack = await self._publish_with_retry(subject, data, event.id)
            logger.info(f"Published event {event.type} [{event.id}] to stream {stream_name}, seq={ack.seq}")
            return True

        except Exception as e:
            logger.error(f"Error publishing event {event.id}: {e}")
            return False

    def _decode_message(self, msg: Msg) -> Event:
        data = json.loads(msg.data.decode())
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")
        if Event.is_envelope(data):
            event = Event.from_dict(data)
            if not event.id:
                event.id = self._message_id(msg)
            return event

        logger.debug(f"Wrapped raw event data in Event envelope: {msg.subject}")
        return Event.from_raw(msg.subject, self._message_id(msg), data)

    @staticmethod
    def _message_id(msg: Msg) -> str:
        """The publisher's dedup id, or the stream sequence"""
        headers = msg.headers or {}
        event_id = headers.get("Nats-Msg-Id")
        if not event_id:
            meta = msg.metadata
            event_id = f"{meta.stream}:{meta.sequence.stream}"
        return event_id

    def _redelivery_delay(self, num_delivered: int) -> float:
        return float(self.retry_base_seconds * (2 ** max(num_delivered - 1, 0)))

    def _build_callback(self, pattern: str, handler: EventHandler) -> Callable[[Msg], Awaitable[None]]:
        async def _on_message(msg: Msg):
            try:
                event = self._decode_message(msg)
            except (ValueError, UnicodeDecodeError) as e:
                # Poison message: never redeliver
                logger.error(f"Undecodable message on {msg.subject}, terminating: {e}")
                await msg.term()
                return

            try:
                await handler(event)
            except Exception as e:
                delivered = msg.metadata.num_delivered
                delay = self._redelivery_delay(delivered)
                logger.error(
                    f"Handler for {pattern} failed on event {event.id} "
                    f"(delivery {delivered}/{self.max_deliver}), retry in {delay}s: {e}"
                )
                await msg.nak(delay=delay)
                return

            await msg.ack()

        return _on_message

    async def subscribe_to_events(
        self, pattern: str, handler: EventHandler, durable: Optional[str] = None
    ) -> Optional[str]:
        """
        Subscribe to events with a pattern using a durable JetStream consumer.

        Args:
            pattern: Subject pattern to subscribe to (e.g., "clip.>")
            handler: Async callback receiving an Event; raising requests redelivery
            durable: Optional durable name for the consumer

        Returns:
            Consumer name, or None when not connected
        """
        if not self._is_connected or not self._js:
            logger.error("Not connected to NATS")
            return None

        prefix = pattern.split('.')[0]
        consumer_name = durable or f"{self.service_name}-{prefix}-consumer"
        stream_name = await self._ensure_stream(pattern)

        consumer_config = ConsumerConfig(
            durable_name=consumer_name,
            deliver_policy=DeliverPolicy.ALL,
            ack_policy=AckPolicy.EXPLICIT,
            ack_wait=self.ack_wait_seconds,
            max_deliver=self.max_deliver,
            filter_subject=pattern,
        )
        subscription = await self._js.subscribe(
            pattern,
            stream=stream_name,
            durable=consumer_name,
            cb=self._build_callback(pattern, handler),
            manual_ack=True,
            config=consumer_config,
        )
        self._subscriptions[pattern] = subscription

        logger.info(f"Subscribed to {pattern} (stream={stream_name}, consumer={consumer_name})")
        return consumer_name

    async def unsubscribe(self, pattern: str) -> bool:
        """Stop delivering a pattern to this process (the durable consumer is kept)"""
        subscription = self._subscriptions.pop(pattern, None)
        if subscription is None:
            return False
        await subscription.unsubscribe()
        logger.info(f"Unsubscribed from {pattern}")
        return True

    async def close(self):
        """Drain subscriptions and close the NATS connection"""
        self._subscriptions.clear()

        if self._nc is not None and not self._nc.is_closed:
            await self._nc.drain()
        self._nc = None
        self._js = None

        self._is_connected = False
        logger.info("Disconnected from NATS")

    @property
    def is_connected(self) -> bool:
        """Check if connected to NATS"""
        return self._is_connected


# Singleton instance
_event_bus: Optional[NATSEventBus] = None


async def get_event_bus(
    service_name: str,
    config: Optional["ConfigManager"] = None,
    **kwargs,
) -> NATSEventBus:
    """
    Get or create event bus instance.

    Args:
        service_name: Name of the service using the event bus
        config: Optional ConfigManager instance for service discovery
        **kwargs: Consumer settings forwarded to NATSEventBus

    Returns:
        Connected NATSEventBus instance
    """
    global _event_bus

    if _event_bus is None:
        _event_bus = NATSEventBus(
            service_name=service_name,
            config=config,
            **kwargs,
        )
        await _event_bus.connect()

    return _event_bus

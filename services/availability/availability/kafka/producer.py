"""
Kafka producer forwarding cache invalidations to the other service replicas
"""
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from confluent_kafka import Producer
from availability.config import settings
from availability.kafka.invalidation_consumer import INVALIDATION_REQUESTED
from availability.schemas.filters import InvalidationScope

logger = logging.getLogger(__name__)


class MutationEventProducer:
    """Kafka producer for invalidation events"""

    def __init__(self):
        self.bootstrap_servers = settings.kafka_bootstrap_servers
        self.mutations_topic = settings.kafka_mutations_topic

        self.producer = Producer({
            'bootstrap.servers': self.bootstrap_servers,
            'client.id': settings.app_name,
        })

    def _publish_event(self, event_type: str, payload: Dict[str, Any], key: Optional[str] = None):
        """Internal method to publish event to Kafka"""
        event = {
            "eventId": str(uuid.uuid4()),
            "createdAt": datetime.now(timezone.utc).isoformat(),
            **payload
        }

        try:
            kafka_key = key or str(uuid.uuid4())

            self.producer.produce(
                self.mutations_topic,
                key=kafka_key,
                value=json.dumps(event).encode('utf-8'),
                headers=[('type', event_type.encode('utf-8'))],
                callback=self._delivery_callback
            )

            # Trigger delivery callback
            self.producer.poll(0)

            logger.info(f"Published {event_type} event to {self.mutations_topic}")
        except Exception as e:
            logger.error(f"Failed to publish {event_type} event: {e}", exc_info=True)
            raise

    def _delivery_callback(self, err, msg):
        """Callback for message delivery"""
        if err:
            logger.error(f"Message delivery failed: {err}")
        else:
            logger.debug(f"Message delivered to {msg.topic()} [{msg.partition()}]")

    def publish_invalidation(self, scope: InvalidationScope):
        """Publish InvalidationRequested for a mutation already applied locally"""
        payload: Dict[str, Any] = {"kind": scope.kind.value}
        if scope.equipment_ids:
            payload["equipmentIds"] = [str(e) for e in scope.equipment_ids]
        if scope.project_id:
            payload["projectId"] = str(scope.project_id)

        # Same partition per kind keeps invalidations of one table ordered
        self._publish_event(INVALIDATION_REQUESTED, payload, key=scope.kind.value)

    def flush(self):
        """Flush pending messages"""
        self.producer.flush()


# Lazy initialization - only create producer when first used
_event_producer_instance = None
_producer_initialization_failed = False


def get_event_producer() -> Optional[MutationEventProducer]:
    """Get or create the global event producer instance (lazy initialization)"""
    global _event_producer_instance, _producer_initialization_failed

    if _producer_initialization_failed:
        return None

    if _event_producer_instance is None:
        try:
            _event_producer_instance = MutationEventProducer()
            logger.info(f"Initialized Kafka producer for {_event_producer_instance.bootstrap_servers}")
        except Exception as e:
            logger.warning(f"Failed to initialize Kafka producer: {e}. Invalidations will not be forwarded.")
            _producer_initialization_failed = True
            return None
    return _event_producer_instance


class EventProducerProxy:
    """Proxy for lazy Kafka producer initialization

    Forwarding is best effort: the local cache is already clean when this is
    called, so a Kafka failure only delays other replicas until their TTL.
    """

    def publish_invalidation(self, scope: InvalidationScope):
        producer = get_event_producer()
        if producer:
            try:
                producer.publish_invalidation(scope)
            except Exception as e:
                logger.warning(f"Failed to publish {INVALIDATION_REQUESTED} event: {e}")

    def flush(self):
        producer = get_event_producer()
        if producer:
            try:
                producer.flush()
            except Exception as e:
                logger.warning(f"Failed to flush Kafka producer: {e}")


event_producer = EventProducerProxy()

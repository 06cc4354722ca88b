"""Kafka consumer turning upstream mutation events into cache invalidations"""
import json
import logging
import socket
from typing import Dict, Any, Optional
from uuid import UUID
from confluent_kafka import Consumer, KafkaError
from availability.config import settings
from availability.schemas.filters import InvalidationKind, InvalidationScope
from availability.services.stock_cache import InvalidationBus

logger = logging.getLogger(__name__)

# Event type prefix -> mutated table
EVENT_KIND_PREFIXES = (
    ("Booking", InvalidationKind.BOOKING),
    ("EventEquipment", InvalidationKind.BOOKING),
    ("ProjectEvent", InvalidationKind.BOOKING),
    ("SubrentalOrder", InvalidationKind.SUBRENTAL),
    ("RepairOrder", InvalidationKind.REPAIR),
    ("Equipment", InvalidationKind.EQUIPMENT),
    ("Provider", InvalidationKind.PROVIDER),
)

INVALIDATION_REQUESTED = "InvalidationRequested"


def scope_from_event(event_type: str, event_data: Dict[str, Any]) -> Optional[InvalidationScope]:
    """Map a mutation event onto the invalidation scope it requires, or None to ignore it"""
    if event_type == INVALIDATION_REQUESTED:
        kind = InvalidationKind(event_data.get("kind", InvalidationKind.ALL.value))
    else:
        kind = next((k for prefix, k in EVENT_KIND_PREFIXES if event_type.startswith(prefix)), None)
        if kind is None:
            return None

    equipment_ids = event_data.get("equipmentIds")
    if equipment_ids is None and event_data.get("equipmentId"):
        equipment_ids = [event_data["equipmentId"]]
    project_id = event_data.get("projectId")

    return InvalidationScope(
        kind=kind,
        equipment_ids=[UUID(str(e)) for e in equipment_ids] if equipment_ids else None,
        project_id=UUID(str(project_id)) if project_id else None,
    )


class InvalidationEventConsumer:
    """Consumes mutation events from Kafka and publishes them on the invalidation bus"""

    def __init__(self, bus: InvalidationBus):
        self.bus = bus
        self.consumer = None
        self.running = False

    def _create_consumer(self) -> Consumer:
        """Create and configure Kafka consumer"""
        return Consumer({
            'bootstrap.servers': settings.kafka_bootstrap_servers,
            # Every replica keeps its own cache, so every replica needs every event
            'group.id': f'availability-service-invalidation-{socket.gethostname()}',
            'auto.offset.reset': 'latest',  # Older mutations are already reflected in the database
            'enable.auto.commit': False,  # Manual commit for better control
            'session.timeout.ms': 30000,
            'max.poll.interval.ms': 300000,
        })

    def start(self):
        """Start consuming mutation events"""
        if self.running:
            logger.warning("Invalidation event consumer is already running")
            return

        try:
            self.consumer = self._create_consumer()
            self.consumer.subscribe([settings.kafka_mutations_topic])
            self.running = True

            logger.info(f"Started invalidation event consumer for topic: {settings.kafka_mutations_topic}")

            while self.running:
                msg = self.consumer.poll(timeout=1.0)
                if msg is None:
                    continue

                if msg.error():
                    if msg.error().code() == KafkaError._PARTITION_EOF:
                        continue
                    logger.error(f"Consumer error: {msg.error()}")
                    continue

                self.handle_message(msg)

        except KeyboardInterrupt:
            logger.info("Stopping invalidation event consumer (KeyboardInterrupt)")
        except Exception as e:
            logger.error(f"Unexpected error in invalidation consumer: {e}", exc_info=True)
            raise
        finally:
            self.stop()

    def handle_message(self, msg) -> bool:
        """Process one Kafka message; returns True when it was committed"""
        try:
            event_data = json.loads(msg.value().decode('utf-8'))

            event_type = None
            if msg.headers():
                for header in msg.headers():
                    if header[0] == 'type':
                        event_type = header[1].decode('utf-8') if isinstance(header[1], bytes) else header[1]
                        break

            if not event_type:
                logger.warning(f"Event missing type header, skipping: {msg.key()}")
                self.consumer.commit(msg)
                return True

            self._process_event(event_type, event_data)

            # Commit only after the cache is clean
            self.consumer.commit(msg)
            return True

        except (json.JSONDecodeError, ValueError) as e:
            logger.error(f"Failed to parse mutation event: {e}")
            # Commit anyway to avoid reprocessing bad messages
            self.consumer.commit(msg)
            return True
        except Exception as e:
            logger.error(f"Error processing mutation event: {e}", exc_info=True)
            # Don't commit on error - allow retry
            return False

    def stop(self):
        """Stop consuming events"""
        self.running = False
        if self.consumer:
            self.consumer.close()
            self.consumer = None
            logger.info("Stopped invalidation event consumer")

    def _process_event(self, event_type: str, event_data: Dict[str, Any]):
        scope = scope_from_event(event_type, event_data)
        if scope is None:
            logger.debug(f"Ignoring event type: {event_type}")
            return

        self.bus.publish(scope)
        logger.debug(f"Applied {event_type} as {scope.kind.value} invalidation")

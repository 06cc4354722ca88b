import json
from uuid import uuid4

import pytest

from availability.kafka.invalidation_consumer import InvalidationEventConsumer, scope_from_event
from availability.schemas.filters import InvalidationKind
from availability.services.stock_cache import InvalidationBus


class FakeMessage:
    def __init__(self, value, event_type=None, key=b"key"):
        self._value = value if isinstance(value, bytes) else json.dumps(value).encode("utf-8")
        self._headers = [("type", event_type.encode("utf-8"))] if event_type else None
        self._key = key

    def value(self):
        return self._value

    def headers(self):
        return self._headers

    def key(self):
        return self._key


class FakeKafkaConsumer:
    def __init__(self):
        self.committed = []
        self.closed = False

    def commit(self, msg):
        self.committed.append(msg)

    def close(self):
        self.closed = True


@pytest.fixture
def received():
    return []


@pytest.fixture
def consumer(received):
    bus = InvalidationBus()
    bus.subscribe(received.append)
    event_consumer = InvalidationEventConsumer(bus)
    event_consumer.consumer = FakeKafkaConsumer()
    return event_consumer


@pytest.mark.parametrize("event_type, kind", [
    ("BookingCreated", InvalidationKind.BOOKING),
    ("ProjectEventEquipmentUpdated", InvalidationKind.BOOKING),
    ("ProjectEventCancelled", InvalidationKind.BOOKING),
    ("SubrentalOrderItemDeleted", InvalidationKind.SUBRENTAL),
    ("RepairOrderCompleted", InvalidationKind.REPAIR),
    ("EquipmentUpdated", InvalidationKind.EQUIPMENT),
    ("ProviderCreated", InvalidationKind.PROVIDER),
])
def test_event_types_map_to_kinds(event_type, kind):
    assert scope_from_event(event_type, {}).kind == kind


def test_unrelated_events_are_ignored():
    assert scope_from_event("InvoiceSent", {"equipmentId": str(uuid4())}) is None


def test_scope_carries_equipment_and_project():
    equipment_id, project_id = uuid4(), uuid4()

    single = scope_from_event("BookingCreated", {"equipmentId": str(equipment_id), "projectId": str(project_id)})
    many = scope_from_event("InvalidationRequested", {"kind": "repair", "equipmentIds": [str(equipment_id)]})

    assert single.equipment_ids == [equipment_id]
    assert single.project_id == project_id
    assert many.kind == InvalidationKind.REPAIR
    assert many.equipment_ids == [equipment_id]


def test_invalidation_request_without_kind_clears_everything():
    assert scope_from_event("InvalidationRequested", {}).kind == InvalidationKind.ALL


def test_message_is_committed_after_bus_delivery(consumer, received):
    msg = FakeMessage({"equipmentId": str(uuid4())}, event_type="BookingDeleted")

    assert consumer.handle_message(msg) is True

    assert [scope.kind for scope in received] == [InvalidationKind.BOOKING]
    assert consumer.consumer.committed == [msg]


def test_message_without_type_header_is_skipped(consumer, received):
    msg = FakeMessage({"kind": "all"})

    assert consumer.handle_message(msg) is True

    assert received == []
    assert consumer.consumer.committed == [msg]


def test_unparseable_messages_are_committed(consumer, received):
    garbage = FakeMessage(b"{not json", event_type="BookingCreated")
    bad_kind = FakeMessage({"kind": "everything"}, event_type="InvalidationRequested")

    assert consumer.handle_message(garbage) is True
    assert consumer.handle_message(bad_kind) is True

    assert received == []
    assert consumer.consumer.committed == [garbage, bad_kind]


def test_failed_invalidation_is_not_committed():
    bus = InvalidationBus()

    def broken(scope):
        raise RuntimeError("cache unavailable")

    bus.subscribe(broken)
    event_consumer = InvalidationEventConsumer(bus)
    event_consumer.consumer = FakeKafkaConsumer()

    assert event_consumer.handle_message(FakeMessage({}, event_type="RepairOrderCreated")) is False
    assert event_consumer.consumer.committed == []


def test_stop_closes_consumer(consumer):
    kafka_consumer = consumer.consumer
    consumer.running = True

    consumer.stop()

    assert kafka_consumer.closed
    assert consumer.consumer is None
    assert consumer.running is False

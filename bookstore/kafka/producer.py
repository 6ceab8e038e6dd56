import json
from kafka import KafkaProducer
from kafka.errors import KafkaError
from bookstore.core.config import settings
from bookstore.core.logging import get_logger

logger = get_logger(__name__)

_producer = None

def _get_producer() -> KafkaProducer:
    global _producer
    if _producer is None:
        _producer = KafkaProducer(
            bootstrap_servers=[settings.KAFKA_BOOTSTRAP],
            value_serializer=lambda v: json.dumps(v, default=str).encode("utf-8"),
            key_serializer=lambda v: (v.encode("utf-8") if isinstance(v, str) else v),
            linger_ms=10,
            retries=5,
        )
    return _producer

def send(topic: str, key: str, value: dict) -> None:
    """Publish one event after its transaction committed.

    Delivery problems are logged; the committed order/stock change stands.
    """
    if not settings.KAFKA_BOOTSTRAP:
        logger.debug("Kafka disabled, dropping %s on %s", value.get("type"), topic)
        return
    try:
        p = _get_producer()
        p.send(topic, key=key, value=value)
        p.flush(5)
    except KafkaError:
        logger.exception("Failed to publish %s for key %s on %s", value.get("type"), key, topic)

def emit_order_event(event_type: str, order, **extra) -> None:
    send(settings.TOPIC_ORDER_EVENTS, key=str(order.id), value={
        "type": event_type,
        "order_id": order.id,
        "user_id": order.user_id,
        "status": order.status.value,
        "order_type": order.order_type.value,
        "total_amount": str(order.total_amount),
        "items": [
            {"book_id": d.book_id, "quantity": d.quantity, "unit_price": str(d.unit_price)}
            for d in order.details
        ],
        **extra,
    })

def emit_inventory_event(event_type: str, book_id: int, **extra) -> None:
    send(settings.TOPIC_INVENTORY_EVENTS, key=str(book_id), value={"type": event_type, "book_id": book_id, **extra})

def close() -> None:
    global _producer
    if _producer is not None:
        _producer.close(timeout=5)
        _producer = None

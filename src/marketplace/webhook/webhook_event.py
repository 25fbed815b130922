"""WebhookEvent aggregate: the permanent audit row for one provider callback.

The provider's event id is unique; a processed row short-circuits every later
delivery of the same event.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Integer, String, Text

from marketplace.domain import marketplace


class ProcessingStatus(Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"


@marketplace.aggregate(schema_name="webhook_events")
class WebhookEvent:
    external_event_id = String(required=True, max_length=255, unique=True)
    event_type = String(required=True, max_length=100)
    payment_intent_id = String(max_length=255)
    processing_status = String(
        choices=ProcessingStatus,
        default=ProcessingStatus.PENDING.value,
    )
    payload = Text()  # JSON: verified raw event body
    error = Text()
    attempts = Integer(default=1, min_value=1)
    received_at = DateTime()
    processed_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def receive(cls, external_event_id, event_type, payment_intent_id, payload):
        now = datetime.now(UTC)
        return cls(
            external_event_id=external_event_id,
            event_type=event_type,
            payment_intent_id=payment_intent_id,
            processing_status=ProcessingStatus.PENDING.value,
            payload=payload if isinstance(payload, str) else json.dumps(payload),
            attempts=1,
            received_at=now,
            updated_at=now,
        )

    @property
    def is_processed(self) -> bool:
        return self.processing_status == ProcessingStatus.PROCESSED.value

    def payload_dict(self) -> dict:
        return json.loads(self.payload) if self.payload else {}

    def retry(self) -> None:
        """Reset a failed or interrupted delivery to pending for another attempt."""
        self.processing_status = ProcessingStatus.PENDING.value
        self.attempts = (self.attempts or 0) + 1
        self.updated_at = datetime.now(UTC)

    def mark_processed(self) -> None:
        now = datetime.now(UTC)
        self.processing_status = ProcessingStatus.PROCESSED.value
        self.error = None
        self.processed_at = now
        self.updated_at = now

    def mark_failed(self, error: str) -> None:
        self.processing_status = ProcessingStatus.FAILED.value
        self.error = error
        self.updated_at = datetime.now(UTC)

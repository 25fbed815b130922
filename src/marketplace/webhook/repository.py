from marketplace.domain import marketplace
from marketplace.webhook.webhook_event import WebhookEvent


@marketplace.repository(part_of=WebhookEvent)
class WebhookEventRepository:
    def find_by_external_id(self, external_event_id) -> WebhookEvent | None:
        return self._dao.query.filter(external_event_id=str(external_event_id)).all().first

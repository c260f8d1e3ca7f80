# caseintake/services/notification_service.py
"""
Outbound case-created notification.

Fire-and-forget: runs after the response is sent, bounded by an explicit
timeout, and never affects the outcome of the intake.
"""
from typing import List, Optional

import httpx

from caseintake.core.config import settings
from caseintake.core.logger import logger


class NotificationService:

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.webhook_url = settings.CASE_CREATED_WEBHOOK_URL if webhook_url is None else webhook_url
        self.timeout = timeout or settings.WEBHOOK_TIMEOUT_SECONDS
        self.transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    async def notify_case_created(
        self,
        casefile_id: int,
        client_ids: List[int],
        defendant_ids: List[int],
        correlation_id: Optional[str] = None,
    ) -> None:
        if not self.enabled:
            return

        headers = {"X-Correlation-ID": correlation_id} if correlation_id else {}
        payload = {"casefileId": casefile_id, "clients": client_ids, "defendants": defendant_ids}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.webhook_url, json=payload, headers=headers)
                response.raise_for_status()
            logger.info("Case-created webhook delivered for casefile %s", casefile_id)
        except httpx.HTTPError as e:
            logger.warning("Case-created webhook failed for casefile %s: %s", casefile_id, e)


# Singleton instance
notification_service = NotificationService()

# caseintake/services/audit_service.py

from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from caseintake.core.config import settings
from caseintake.core.logger import logger
from caseintake.db.models import ApiLog
from caseintake.utils.helpers import to_json_snippet

SENSITIVE_KEYS = {"ssn"}


def mask_sensitive(value: Any) -> Any:
    """Copy of ``value`` with SSNs reduced to their last four digits"""
    if isinstance(value, dict):
        masked = {}
        for key, item in value.items():
            if key.lower() in SENSITIVE_KEYS and isinstance(item, str) and item:
                masked[key] = "***-**-" + item[-4:] if len(item) >= 4 else "***"
            else:
                masked[key] = mask_sensitive(item)
        return masked
    if isinstance(value, list):
        return [mask_sensitive(item) for item in value]
    return value


@dataclass
class AuditEntry:
    endpoint: str
    method: str
    status_code: int
    response_time_ms: int
    api_key_id: Optional[int] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    correlation_id: Optional[str] = None
    request_body: Any = None
    response_body: Any = None
    error_message: Optional[str] = None


class AuditService:
    """
    Service for the API usage trail.
    One ``api_logs`` row per invocation, success or failure.
    """

    def __init__(self, max_body_chars: Optional[int] = None):
        self.max_body_chars = max_body_chars or settings.AUDIT_BODY_MAX_CHARS

    def log_request(self, bind: Engine, entry: AuditEntry) -> None:
        """
        Write the audit row on a session of its own so a failed intake
        transaction cannot take it down. Never raises.
        """
        try:
            with Session(bind=bind) as session:
                session.add(ApiLog(
                    api_key_id=entry.api_key_id,
                    endpoint=entry.endpoint,
                    method=entry.method,
                    status_code=entry.status_code,
                    response_time_ms=entry.response_time_ms,
                    ip_address=entry.ip_address,
                    user_agent=entry.user_agent,
                    correlation_id=entry.correlation_id,
                    request_body=to_json_snippet(mask_sensitive(entry.request_body), self.max_body_chars),
                    response_body=to_json_snippet(entry.response_body, self.max_body_chars),
                    error_message=entry.error_message,
                ))
                session.commit()

            logger.info(
                "%s %s -> %s in %sms (key=%s)",
                entry.method, entry.endpoint, entry.status_code,
                entry.response_time_ms, entry.api_key_id,
            )

        except Exception as e:
            logger.error(f"Failed to write API log: {str(e)}")


# Singleton instance
audit_service = AuditService()

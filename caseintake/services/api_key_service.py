# caseintake/services/api_key_service.py
"""
API key validation and issuance.

Keys are random alphanumeric secrets handed to integrations once; only their
SHA-256 hex digest is stored.
"""
import hashlib
import secrets
import string
from datetime import datetime
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from caseintake.core.config import settings
from caseintake.core.logger import logger
from caseintake.db.models import ApiKey
from caseintake.utils.exceptions import AuthenticationError, DatabaseError, db_error_summary
from caseintake.utils.helpers import utcnow
from caseintake.utils.validators import BEARER_PATTERN

_KEY_ALPHABET = string.ascii_letters + string.digits


def hash_api_key(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def generate_api_key(length: Optional[int] = None) -> str:
    length = length or settings.API_KEY_LENGTH
    return "".join(secrets.choice(_KEY_ALPHABET) for _ in range(length))


def extract_bearer_token(authorization: Optional[str]) -> str:
    """Pull the token out of an ``Authorization: Bearer <token>`` value"""
    if not authorization:
        raise AuthenticationError("Missing Authorization header")

    match = BEARER_PATTERN.match(authorization.strip())
    if not match:
        raise AuthenticationError(
            "Invalid Authorization header format. Expected: Bearer <token>"
        )

    token = match.group(1).strip()
    if len(token) < settings.API_KEY_MIN_LENGTH:
        raise AuthenticationError("Invalid API key format")
    return token


class ApiKeyService:

    def authenticate(self, db: Session, authorization: Optional[str]) -> ApiKey:
        """
        Resolve the presented bearer token to an active, unexpired key.
        Raises AuthenticationError otherwise; never touches rate-limit state.
        """
        token = extract_bearer_token(authorization)
        key_hash = hash_api_key(token)

        try:
            api_key = (
                db.query(ApiKey)
                .filter(ApiKey.key_hash == key_hash, ApiKey.is_active == True)  # noqa: E712
                .first()
            )
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("API key lookup failed")
            raise DatabaseError(f"Failed to validate API key: {db_error_summary(exc)}") from exc

        if api_key is None:
            raise AuthenticationError("Invalid or inactive API key")

        if api_key.expires_at is not None and api_key.expires_at < utcnow():
            raise AuthenticationError("API key has expired")

        return api_key

    def touch_last_used(self, bind: Engine, api_key_id: int, used_at: Optional[datetime] = None) -> None:
        """
        Record last use on a session of its own. Best-effort: failures are
        logged and never reach the caller.
        """
        try:
            with Session(bind=bind) as session:
                session.query(ApiKey).filter(ApiKey.id == api_key_id).update(
                    {ApiKey.last_used_at: used_at or utcnow()},
                    synchronize_session=False,
                )
                session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to update last_used_at for api key {api_key_id}: {str(e)}")

    def issue_key(
        self,
        db: Session,
        name: str,
        rate_limit_per_hour: Optional[int] = None,
        expires_at: Optional[datetime] = None,
    ) -> tuple[ApiKey, str]:
        """Create a key row and return it with the plain secret (shown once)"""
        plain_key = generate_api_key()
        api_key = ApiKey(
            name=name,
            key_hash=hash_api_key(plain_key),
            is_active=True,
            rate_limit_per_hour=rate_limit_per_hour or settings.DEFAULT_RATE_LIMIT_PER_HOUR,
            expires_at=expires_at,
        )
        db.add(api_key)
        db.commit()
        db.refresh(api_key)
        logger.info("Issued API key id=%s name=%s", api_key.id, name)
        return api_key, plain_key

    def set_active(self, db: Session, api_key_id: int, is_active: bool) -> bool:
        updated = (
            db.query(ApiKey)
            .filter(ApiKey.id == api_key_id)
            .update({ApiKey.is_active: is_active}, synchronize_session=False)
        )
        db.commit()
        return bool(updated)


# Singleton instance
api_key_service = ApiKeyService()

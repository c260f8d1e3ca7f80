# caseintake/services/reference_resolver.py
"""
Temporary-reference resolution.

The intake wizard can point at insurers and providers that do not exist yet
(``PendingReference``). Resolving such a reference inserts a minimal row and
returns its new id; an ``ExistingReference`` resolves to its id unchanged.

Identical pending markers found in different places of the payload are NOT
deduplicated: each resolution inserts its own row.
"""
import enum
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from caseintake.core.config import settings
from caseintake.core.logger import logger
from caseintake.db.models import AutoInsurance, HealthInsurance, MedicalProvider
from caseintake.db.schemas import ExistingReference, PendingReference, Reference
from caseintake.utils.exceptions import db_error_summary


class ReferenceTarget(str, enum.Enum):
    health_insurance = "health_insurance"
    auto_insurance = "auto_insurance"
    medical_provider = "medical_providers"


DEFAULT_DISPLAY_NAMES = {
    ReferenceTarget.health_insurance: "New Health Insurance",
    ReferenceTarget.auto_insurance: "New Auto Insurance",
    ReferenceTarget.medical_provider: "New Medical Provider",
}


class ReferenceResolutionError(Exception):
    """Raised when a pending row could not be inserted"""

    def __init__(self, target: ReferenceTarget, display_name: str, cause: Exception):
        super().__init__(f"Failed to save {display_name}: {db_error_summary(cause)}")
        self.target = target
        self.display_name = display_name
        self.cause = cause


class ReferenceResolver:
    """
    Resolves references against one database session. Each pending insert is
    committed on its own.
    """

    def __init__(self, db: Session):
        self.db = db

    def resolve(self, reference: Optional[Reference], target: ReferenceTarget) -> Optional[int]:
        if reference is None:
            return None
        if isinstance(reference, ExistingReference):
            return reference.id
        if isinstance(reference, PendingReference):
            return self._materialize(reference, target)
        raise TypeError(f"Unsupported reference type: {type(reference).__name__}")

    def _materialize(self, reference: PendingReference, target: ReferenceTarget) -> int:
        display_name = reference.display_name or DEFAULT_DISPLAY_NAMES[target]
        row = self._new_row(target, display_name)
        try:
            self.db.add(row)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise ReferenceResolutionError(target, display_name, exc) from exc

        logger.info(
            "Materialized %s '%s' as id=%s (marker=%s)",
            target.value, display_name, row.id, reference.marker,
        )
        return row.id

    @staticmethod
    def _new_row(target: ReferenceTarget, display_name: str):
        if target is ReferenceTarget.medical_provider:
            return MedicalProvider(
                name=display_name,
                type="Other",
                request_method="Email",
                city="",
                state=settings.DEFAULT_COMPANY_STATE,
            )
        model = HealthInsurance if target is ReferenceTarget.health_insurance else AutoInsurance
        return model(
            name=display_name,
            phone="",
            city="",
            state=settings.DEFAULT_COMPANY_STATE,
        )

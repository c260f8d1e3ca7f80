"""
Custom validators
"""
import re
from datetime import date

ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
ZIP_CODE_PATTERN = re.compile(r"^\d{5}(-\d{4})?$")
BEARER_PATTERN = re.compile(r"^Bearer\s+(.+)$", re.IGNORECASE)
TEMP_REFERENCE_PREFIX = "temp-"


def parse_iso_date(value: str) -> date:
    """
    Parse a strict YYYY-MM-DD string.
    Raises ValueError for any other shape or an impossible calendar date.
    """
    if not isinstance(value, str) or not ISO_DATE_PATTERN.match(value):
        raise ValueError("Expected a date in YYYY-MM-DD format")
    return date.fromisoformat(value)


def validate_zip_code(zip_code: str) -> bool:
    """
    Validate US ZIP code
    Accepts: 74103 or 74103-1234
    """
    return bool(ZIP_CODE_PATTERN.match(zip_code))


def is_temp_reference(value: object) -> bool:
    return isinstance(value, str) and value.startswith(TEMP_REFERENCE_PREFIX)


def validate_stage_status(stage: str, status: str) -> bool:
    """Check that a stage/status pair belongs to the case lattice"""
    from caseintake.db.models import CASE_STATUSES, CaseStage

    try:
        case_stage = CaseStage(stage)
    except ValueError:
        return False
    return status in CASE_STATUSES[case_stage]

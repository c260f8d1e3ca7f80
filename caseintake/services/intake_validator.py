# caseintake/services/intake_validator.py
"""
Intake payload validation.

Shape and field rules live on the pydantic models in ``caseintake.db.schemas``;
this service runs them, adds the checks that span several defendants, and
reports every violation at once as ``{field, message}`` entries.
"""
from typing import Any, Dict, List

from pydantic import ValidationError as PydanticValidationError

from caseintake.core.config import settings
from caseintake.db.schemas import CreateCaseRequest, IntakeForm
from caseintake.utils.exceptions import ValidationError


def _field_path(loc: tuple) -> str:
    return ".".join(str(part) for part in loc) or "body"


def _format_errors(exc: PydanticValidationError) -> List[Dict[str, str]]:
    violations = []
    for error in exc.errors():
        message = error["msg"]
        # "Value error, ..." prefix from plain ValueErrors adds nothing for API consumers
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        violations.append({"field": _field_path(error["loc"]), "message": message})
    return violations


class IntakeValidator:

    def __init__(self, enforce_liability_total: bool = None):
        if enforce_liability_total is None:
            enforce_liability_total = settings.INTAKE_ENFORCE_LIABILITY_TOTAL
        self.enforce_liability_total = enforce_liability_total

    def validate(self, payload: Any) -> CreateCaseRequest:
        """Return the normalized request or raise ValidationError listing all violations"""
        try:
            request = CreateCaseRequest.model_validate(payload)
        except PydanticValidationError as exc:
            raise ValidationError(_format_errors(exc))

        violations = self._cross_field_violations(request.intake_data)
        if violations:
            raise ValidationError(violations)
        return request

    def _cross_field_violations(self, form: IntakeForm) -> List[Dict[str, str]]:
        violations = []
        defendant_count = len(form.defendants)

        for index, defendant in enumerate(form.defendants):
            related = defendant.related_to_defendant_id
            if related is None:
                continue
            field = f"intakeData.defendants.{index}.relatedToDefendantId"
            if related == index + 1:
                violations.append({"field": field, "message": "A defendant cannot be related to itself"})
            elif related > defendant_count:
                violations.append({
                    "field": field,
                    "message": f"No defendant number {related} in this submission",
                })

        if self.enforce_liability_total and form.defendants:
            total = sum(d.liability_percentage for d in form.defendants)
            if total != 100:
                violations.append({
                    "field": "intakeData.defendants",
                    "message": f"Liability percentages must total 100 (got {total})",
                })

        return violations


# Singleton instance
intake_validator = IntakeValidator()

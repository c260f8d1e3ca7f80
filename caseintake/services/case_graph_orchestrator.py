# caseintake/services/case_graph_orchestrator.py
"""
Case Graph Orchestrator
=======================
Turns one validated intake form into the case graph:

    casefile -> clients -> per client (medical bills, health claim,
    first-party claim) -> defendants -> defendant relationships ->
    third-party claims -> adjusters -> work log

Steps run strictly in order and each one commits on its own. There are no
compensating deletes: when a fatal step fails, rows written by earlier steps
stay in place and the raised DatabaseError names the step and the casefile id.

Fatal steps: casefile, clients, medical_bills, health_claim, defendants,
third_party_claims. Everything else is logged as a warning and skipped.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from caseintake.core.config import settings
from caseintake.core.logger import logger
from caseintake.db.models import (
    AutoAdjuster,
    Casefile,
    Client,
    Defendant,
    FirstPartyClaim,
    HealthClaim,
    INITIAL_STAGE,
    INITIAL_STATUS,
    MedicalBill,
    ThirdPartyClaim,
    WorkLog,
)
from caseintake.db.schemas import IntakeClient, IntakeDefendant, IntakeForm
from caseintake.services.reference_resolver import (
    ReferenceResolutionError,
    ReferenceResolver,
    ReferenceTarget,
)
from caseintake.utils.exceptions import DatabaseError, db_error_summary
from caseintake.utils.helpers import add_years
from caseintake.utils.validators import validate_stage_status


# ============================================================================
# Results
# ============================================================================

@dataclass
class StepResult:
    """Outcome of one saga step"""
    step: str
    ok: bool
    fatal: bool
    error: Optional[str] = None


@dataclass
class CaseGraphResult:
    casefile_id: int
    client_ids: List[int]
    defendant_ids: List[int]
    steps: List[StepResult] = field(default_factory=list)

    @property
    def warnings(self) -> List[StepResult]:
        return [s for s in self.steps if not s.ok]


def compute_statute(date_of_loss: date, today: date, years: int = 2) -> tuple[date, int]:
    """Return (statute_deadline, days_until_statute); days go negative once past"""
    deadline = add_years(date_of_loss, years)
    return deadline, (deadline - today).days


def _blank_to_none(value: str) -> Optional[str]:
    return value or None


# ============================================================================
# Orchestrator
# ============================================================================

class CaseGraphOrchestrator:

    def __init__(self, db: Session, today: Callable[[], date] = date.today):
        self.db = db
        self.today = today
        self.resolver = ReferenceResolver(db)
        self.casefile_id: Optional[int] = None
        self.steps: List[StepResult] = []

    def run(self, form: IntakeForm) -> CaseGraphResult:
        casefile = self._fatal("casefile", lambda: self._create_casefile(form))
        self.casefile_id = casefile.id

        clients = self._fatal("clients", lambda: self._create_clients(casefile, form.clients))

        for client, intake_client in zip(clients, form.clients):
            self._fatal("medical_bills", lambda: self._create_medical_bills(client, intake_client))
            if intake_client.has_health_insurance:
                self._fatal("health_claim", lambda: self._create_health_claim(client, intake_client))
            if intake_client.has_auto_insurance:
                self._non_fatal(
                    "first_party_claim",
                    lambda: self._create_first_party_claim(casefile, client, intake_client),
                )

        defendants: List[Defendant] = []
        if form.defendants:
            defendants = self._fatal(
                "defendants", lambda: self._create_defendants(casefile, form.defendants)
            )
            if any(d.related_to_defendant_id for d in form.defendants):
                self._non_fatal(
                    "defendant_relationships",
                    lambda: self._link_defendants(defendants, form.defendants),
                )
            # Claims take the insurer id already stored on each defendant row rather
            # than resolving the reference again, so a pending insurer is inserted once
            claims = self._fatal(
                "third_party_claims",
                lambda: self._create_third_party_claims(defendants, form.defendants),
            )
            for claim, defendant, intake_defendant in claims:
                if intake_defendant.auto_adjuster_id or intake_defendant.has_adjuster_info:
                    self._non_fatal(
                        "auto_adjuster",
                        lambda: self._attach_adjuster(claim, defendant, intake_defendant),
                    )

        self._non_fatal("work_log", lambda: self._write_work_log(casefile, len(clients), len(defendants)))

        result = CaseGraphResult(
            casefile_id=casefile.id,
            client_ids=[c.id for c in clients],
            defendant_ids=[d.id for d in defendants],
            steps=self.steps,
        )
        logger.info(
            "Case graph created: casefile=%s clients=%s defendants=%s warnings=%s",
            casefile.id, len(clients), len(defendants),
            len(result.warnings),
        )
        return result

    # ── Step runners ─────────────────────────────────────────────────────

    def _fatal(self, step: str, action):
        logger.info("Step %s started (casefile=%s)", step, self.casefile_id)
        try:
            result = action()
        except (SQLAlchemyError, ReferenceResolutionError) as exc:
            self.db.rollback()
            summary = db_error_summary(exc)
            self.steps.append(StepResult(step=step, ok=False, fatal=True, error=summary))
            logger.exception("Step %s failed (casefile=%s)", step, self.casefile_id)
            raise DatabaseError(
                f"Failed at step '{step}': {summary}",
                step=step,
                casefile_id=self.casefile_id,
            ) from exc
        self.steps.append(StepResult(step=step, ok=True, fatal=True))
        logger.info("Step %s finished (casefile=%s)", step, self.casefile_id)
        return result

    def _non_fatal(self, step: str, action) -> None:
        try:
            action()
        except (SQLAlchemyError, ReferenceResolutionError) as exc:
            self.db.rollback()
            summary = db_error_summary(exc)
            self.steps.append(StepResult(step=step, ok=False, fatal=False, error=summary))
            logger.warning("Step %s failed, continuing (casefile=%s): %s", step, self.casefile_id, summary)
            return
        self.steps.append(StepResult(step=step, ok=True, fatal=False))

    # ── Steps ────────────────────────────────────────────────────────────

    def _create_casefile(self, form: IntakeForm) -> Casefile:
        if not validate_stage_status(INITIAL_STAGE.value, INITIAL_STATUS):
            raise ValueError(f"Invalid initial stage/status {INITIAL_STAGE.value}/{INITIAL_STATUS}")

        today = self.today()
        deadline, days_left = compute_statute(
            form.date_of_loss, today, settings.STATUTE_OF_LIMITATIONS_YEARS
        )
        casefile = Casefile(
            stage=INITIAL_STAGE.value,
            status=INITIAL_STATUS,
            client_count=len(form.clients),
            defendant_count=len(form.defendants),
            date_of_loss=form.date_of_loss,
            time_of_wreck=_blank_to_none(form.time_of_wreck),
            wreck_type=_blank_to_none(form.wreck_type),
            wreck_street=_blank_to_none(form.wreck_street),
            wreck_city=_blank_to_none(form.wreck_city),
            wreck_county=_blank_to_none(form.wreck_county),
            wreck_state=form.wreck_state or settings.DEFAULT_WRECK_STATE,
            is_police_involved=form.is_police_involved,
            police_force=_blank_to_none(form.police_force),
            is_police_report=form.is_police_report,
            police_report_number=_blank_to_none(form.police_report_number),
            vehicle_description=_blank_to_none(form.vehicle_description),
            damage_level=_blank_to_none(form.damage_level),
            wreck_description=_blank_to_none(form.wreck_description),
            sign_up_date=form.sign_up_date or today,
            statute_deadline=deadline,
            days_until_statute=days_left,
            is_archived=False,
        )
        self.db.add(casefile)
        self.db.commit()
        return casefile

    def _create_clients(self, casefile: Casefile, intake_clients: List[IntakeClient]) -> List[Client]:
        clients = []
        for number, c in enumerate(intake_clients, start=1):
            clients.append(Client(
                casefile_id=casefile.id,
                client_number=number,
                client_order=number,
                is_driver=c.is_driver,
                first_name=c.first_name,
                middle_name=_blank_to_none(c.middle_name),
                last_name=c.last_name,
                date_of_birth=c.date_of_birth,
                ssn=_blank_to_none(c.ssn),
                marital_status=_blank_to_none(c.marital_status),
                street_address=c.street_address,
                city=c.city,
                state=c.state,
                zip_code=c.zip_code,
                primary_phone=c.primary_phone,
                secondary_phone=_blank_to_none(c.secondary_phone),
                email=_blank_to_none(c.email),
                referrer=_blank_to_none(c.referrer),
                referrer_relationship=_blank_to_none(c.referrer_relationship),
                injury_description=_blank_to_none(c.injury_description),
                prior_accidents=_blank_to_none(c.prior_accidents),
                prior_injuries=_blank_to_none(c.prior_injuries),
                work_impact=_blank_to_none(c.work_impact),
                has_health_insurance=c.has_health_insurance,
                relationship_to_primary=_blank_to_none(c.relationship_to_primary),
                uses_primary_address=c.uses_primary_address,
                uses_primary_phone=c.uses_primary_phone,
            ))
        self.db.add_all(clients)
        self.db.commit()
        return clients

    def _create_medical_bills(self, client: Client, intake_client: IntakeClient) -> None:
        if not intake_client.selected_providers:
            return
        bills = []
        for reference in intake_client.selected_providers:
            provider_id = self.resolver.resolve(reference, ReferenceTarget.medical_provider)
            bills.append(MedicalBill(client_id=client.id, medical_provider_id=provider_id))
        self.db.add_all(bills)
        self.db.commit()

    def _create_health_claim(self, client: Client, intake_client: IntakeClient) -> None:
        insurer_id = self.resolver.resolve(
            intake_client.health_insurance_id, ReferenceTarget.health_insurance
        )
        if insurer_id is None:
            logger.info("Client %s has health insurance but no insurer selected", client.id)
            return
        self.db.add(HealthClaim(
            client_id=client.id,
            health_insurance_id=insurer_id,
            member_id=_blank_to_none(intake_client.health_member_id),
        ))
        self.db.commit()

    def _create_first_party_claim(self, casefile: Casefile, client: Client, intake_client: IntakeClient) -> None:
        insurer_id = self.resolver.resolve(
            intake_client.auto_insurance_id, ReferenceTarget.auto_insurance
        )
        if insurer_id is None:
            logger.info("Client %s has auto insurance but no insurer selected", client.id)
            return
        self.db.add(FirstPartyClaim(
            casefile_id=casefile.id,
            client_id=client.id,
            auto_insurance_id=insurer_id,
            policy_number=_blank_to_none(intake_client.auto_policy_number),
            claim_number=_blank_to_none(intake_client.auto_claim_number),
            has_medpay=intake_client.has_medpay,
            medpay_amount=_blank_to_none(intake_client.medpay_amount),
            has_um_coverage=intake_client.has_um_coverage,
            um_amount=_blank_to_none(intake_client.um_amount),
        ))
        self.db.commit()

    def _create_defendants(
        self, casefile: Casefile, intake_defendants: List[IntakeDefendant]
    ) -> List[Defendant]:
        defendants = []
        for number, d in enumerate(intake_defendants, start=1):
            insurer_id = self.resolver.resolve(d.auto_insurance_id, ReferenceTarget.auto_insurance)
            defendants.append(Defendant(
                casefile_id=casefile.id,
                defendant_number=number,
                first_name=d.first_name,
                last_name=d.last_name,
                is_policyholder=d.is_policyholder,
                policyholder_first_name=_blank_to_none(d.policyholder_first_name),
                policyholder_last_name=_blank_to_none(d.policyholder_last_name),
                auto_insurance_id=insurer_id,
                policy_number=_blank_to_none(d.policy_number),
                liability_percentage=d.liability_percentage,
                notes=_blank_to_none(d.notes),
            ))
        self.db.add_all(defendants)
        self.db.commit()
        return defendants

    def _link_defendants(self, defendants: List[Defendant], intake_defendants: List[IntakeDefendant]) -> None:
        for defendant, d in zip(defendants, intake_defendants):
            if not d.related_to_defendant_id:
                continue
            defendant.related_to_defendant_id = defendants[d.related_to_defendant_id - 1].id
            defendant.relationship_type = _blank_to_none(d.relationship_type)
        self.db.commit()

    def _create_third_party_claims(
        self, defendants: List[Defendant], intake_defendants: List[IntakeDefendant]
    ):
        # The insurer id resolved for the defendant row is reused here
        created = []
        for defendant, d in zip(defendants, intake_defendants):
            if defendant.auto_insurance_id is None:
                continue
            claim = ThirdPartyClaim(
                defendant_id=defendant.id,
                auto_insurance_id=defendant.auto_insurance_id,
                claim_number=_blank_to_none(d.claim_number),
            )
            self.db.add(claim)
            created.append((claim, defendant, d))
        self.db.commit()
        return created

    def _attach_adjuster(self, claim: ThirdPartyClaim, defendant: Defendant, d: IntakeDefendant) -> None:
        if d.auto_adjuster_id:
            adjuster = self.db.get(AutoAdjuster, d.auto_adjuster_id)
            if adjuster is None:
                logger.warning(
                    "Adjuster %s not found for defendant %s", d.auto_adjuster_id, defendant.id
                )
                return
            adjuster.third_party_claim_id = claim.id
        else:
            self.db.add(AutoAdjuster(
                auto_insurance_id=claim.auto_insurance_id,
                third_party_claim_id=claim.id,
                first_name=_blank_to_none(d.adjuster_first_name),
                last_name=_blank_to_none(d.adjuster_last_name),
                email=_blank_to_none(d.adjuster_email),
                phone=_blank_to_none(d.adjuster_phone),
                mailing_address=_blank_to_none(d.adjuster_mailing_address),
                city=_blank_to_none(d.adjuster_city),
                state=_blank_to_none(d.adjuster_state),
                zip_code=_blank_to_none(d.adjuster_zip_code),
            ))
        self.db.commit()

    def _write_work_log(self, casefile: Casefile, client_count: int, defendant_count: int) -> None:
        self.db.add(WorkLog(
            casefile_id=casefile.id,
            description=(
                f"Case created through API with {client_count} client(s) "
                f"and {defendant_count} defendant(s)"
            ),
            user_name=settings.WORK_LOG_AUTHOR,
        ))
        self.db.commit()

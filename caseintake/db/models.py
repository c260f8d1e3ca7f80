"""
SQLAlchemy ORM Models
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    TIMESTAMP,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from caseintake.db.database import Base
from caseintake.utils.helpers import utcnow

# ============================================================================
# Enums
# ============================================================================

class CaseStage(str, enum.Enum):
    """Top-level case stage"""
    intake = "Intake"
    processing = "Processing"
    demand = "Demand"
    closed = "Closed"


# Valid statuses for each stage. Intake always starts at Intake/New.
CASE_STATUSES: dict[CaseStage, tuple[str, ...]] = {
    CaseStage.intake: ("New", "Incomplete"),
    CaseStage.processing: ("Treating", "Awaiting B&R", "Awaiting Subro"),
    CaseStage.demand: (
        "Ready for Demand",
        "Demand Sent",
        "Counter Received",
        "Counter Sent",
        "Reduction Sent",
        "Proposed Settlement Statement Sent",
        "Release Sent",
        "Payment Instructions Sent",
    ),
    CaseStage.closed: ("Closed",),
}

INITIAL_STAGE = CaseStage.intake
INITIAL_STATUS = "New"


# ============================================================================
# API access
# ============================================================================

class ApiKey(Base):
    """Machine credential; only the SHA-256 digest of the secret is stored"""
    __tablename__ = "api_keys"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    key_hash = Column(String(64), unique=True, nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    rate_limit_per_hour = Column(Integer, nullable=False, default=100)
    expires_at = Column(TIMESTAMP, nullable=True)
    last_used_at = Column(TIMESTAMP, nullable=True)
    created_at = Column(TIMESTAMP, nullable=False, default=utcnow)

    rate_limits = relationship("ApiRateLimit", back_populates="api_key")


class ApiRateLimit(Base):
    """Per-key request counter for one hour-aligned window"""
    __tablename__ = "api_rate_limits"
    __table_args__ = (
        UniqueConstraint("api_key_id", "window_start", name="uq_api_rate_limits_key_window"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    api_key_id = Column(Integer, ForeignKey("api_keys.id"), nullable=False, index=True)
    window_start = Column(TIMESTAMP, nullable=False)
    window_end = Column(TIMESTAMP, nullable=False, index=True)
    request_count = Column(Integer, nullable=False, default=0)
    created_at = Column(TIMESTAMP, nullable=False, default=utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=utcnow, onupdate=utcnow)

    api_key = relationship("ApiKey", back_populates="rate_limits")


class ApiLog(Base):
    """One row per API invocation, written whatever the outcome"""
    __tablename__ = "api_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    api_key_id = Column(Integer, ForeignKey("api_keys.id"), nullable=True, index=True)
    endpoint = Column(String(255), nullable=False)
    method = Column(String(10), nullable=False)
    status_code = Column(Integer, nullable=False)
    response_time_ms = Column(Integer, nullable=False)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    correlation_id = Column(String(64), nullable=True)
    request_body = Column(Text, nullable=True)
    response_body = Column(Text, nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(TIMESTAMP, nullable=False, default=utcnow, index=True)


# ============================================================================
# Reference directories (insurers, providers, adjusters)
# ============================================================================

class HealthInsurance(Base):
    __tablename__ = "health_insurance"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=False, default="")
    street_address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=False, default="")
    state = Column(String(50), nullable=False, default="OK")
    zip_code = Column(String(10), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(TIMESTAMP, nullable=False, default=utcnow)


class AutoInsurance(Base):
    __tablename__ = "auto_insurance"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=False, default="")
    street_address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=False, default="")
    state = Column(String(50), nullable=False, default="OK")
    zip_code = Column(String(10), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(TIMESTAMP, nullable=False, default=utcnow)

    adjusters = relationship("AutoAdjuster", back_populates="auto_insurance")


class MedicalProvider(Base):
    __tablename__ = "medical_providers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    type = Column(String(100), nullable=False, default="Other")
    street_address = Column(String(255), nullable=False, default="")
    city = Column(String(100), nullable=False, default="")
    state = Column(String(50), nullable=False, default="OK")
    zip_code = Column(String(10), nullable=False, default="")
    phone = Column(String(20), nullable=False, default="")
    fax = Column(String(20), nullable=False, default="")
    email = Column(String(255), nullable=False, default="")
    request_method = Column(String(50), nullable=False, default="Email")
    notes = Column(Text, nullable=True)
    created_at = Column(TIMESTAMP, nullable=False, default=utcnow)


class AutoAdjuster(Base):
    __tablename__ = "auto_adjusters"

    id = Column(Integer, primary_key=True, autoincrement=True)
    auto_insurance_id = Column(Integer, ForeignKey("auto_insurance.id"), nullable=True, index=True)
    third_party_claim_id = Column(Integer, ForeignKey("third_party_claims.id"), nullable=True, index=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=True)
    mailing_address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(50), nullable=True)
    zip_code = Column(String(10), nullable=True)
    created_at = Column(TIMESTAMP, nullable=False, default=utcnow)

    auto_insurance = relationship("AutoInsurance", back_populates="adjusters")
    third_party_claim = relationship("ThirdPartyClaim", back_populates="adjusters")


# ============================================================================
# Case graph
# ============================================================================

class Casefile(Base):
    """Root record of one legal matter"""
    __tablename__ = "casefiles"
    __table_args__ = (
        Index("ix_casefiles_stage_status", "stage", "status"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Classification
    stage = Column(String(50), nullable=False, default=INITIAL_STAGE.value)
    status = Column(String(100), nullable=False, default=INITIAL_STATUS)
    client_count = Column(Integer, nullable=False, default=0)
    defendant_count = Column(Integer, nullable=False, default=0)

    # Accident
    date_of_loss = Column(Date, nullable=False)
    time_of_wreck = Column(String(20), nullable=True)
    wreck_type = Column(String(100), nullable=True)
    wreck_street = Column(String(255), nullable=True)
    wreck_city = Column(String(100), nullable=True)
    wreck_county = Column(String(100), nullable=True)
    wreck_state = Column(String(50), nullable=True)
    is_police_involved = Column(Boolean, nullable=False, default=False)
    police_force = Column(String(100), nullable=True)
    is_police_report = Column(Boolean, nullable=False, default=False)
    police_report_number = Column(String(100), nullable=True)
    vehicle_description = Column(String(500), nullable=True)
    damage_level = Column(String(50), nullable=True)
    wreck_description = Column(Text, nullable=True)

    # Deadlines
    sign_up_date = Column(Date, nullable=True)
    statute_deadline = Column(Date, nullable=True)
    days_until_statute = Column(Integer, nullable=True)

    is_archived = Column(Boolean, nullable=False, default=False)
    created_at = Column(TIMESTAMP, nullable=False, default=utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=utcnow, onupdate=utcnow)

    clients = relationship(
        "Client", back_populates="casefile", cascade="all, delete-orphan",
        order_by="Client.client_number",
    )
    defendants = relationship(
        "Defendant", back_populates="casefile", cascade="all, delete-orphan",
        order_by="Defendant.defendant_number",
    )
    work_logs = relationship("WorkLog", back_populates="casefile", cascade="all, delete-orphan")


class Client(Base):
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, autoincrement=True)
    casefile_id = Column(Integer, ForeignKey("casefiles.id", ondelete="CASCADE"), nullable=False, index=True)
    client_number = Column(Integer, nullable=False)
    client_order = Column(Integer, nullable=False)
    is_driver = Column(Boolean, nullable=False, default=False)

    # Identity
    first_name = Column(String(100), nullable=False)
    middle_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=False)
    date_of_birth = Column(Date, nullable=False)
    ssn = Column(String(20), nullable=True)
    marital_status = Column(String(50), nullable=True)

    # Contact
    street_address = Column(String(255), nullable=False)
    city = Column(String(100), nullable=False)
    state = Column(String(50), nullable=False)
    zip_code = Column(String(10), nullable=False)
    primary_phone = Column(String(20), nullable=False)
    secondary_phone = Column(String(20), nullable=True)
    email = Column(String(255), nullable=True)
    referrer = Column(String(255), nullable=True)
    referrer_relationship = Column(String(100), nullable=True)

    # Medical history
    injury_description = Column(Text, nullable=True)
    prior_accidents = Column(Text, nullable=True)
    prior_injuries = Column(Text, nullable=True)
    work_impact = Column(Text, nullable=True)
    has_health_insurance = Column(Boolean, nullable=False, default=False)

    # Relationship to the primary client
    relationship_to_primary = Column(String(50), nullable=True)
    uses_primary_address = Column(Boolean, nullable=False, default=False)
    uses_primary_phone = Column(Boolean, nullable=False, default=False)

    created_at = Column(TIMESTAMP, nullable=False, default=utcnow)

    casefile = relationship("Casefile", back_populates="clients")
    medical_bills = relationship("MedicalBill", back_populates="client", cascade="all, delete-orphan")
    health_claims = relationship("HealthClaim", back_populates="client", cascade="all, delete-orphan")
    first_party_claims = relationship("FirstPartyClaim", back_populates="client", cascade="all, delete-orphan")


class Defendant(Base):
    __tablename__ = "defendants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    casefile_id = Column(Integer, ForeignKey("casefiles.id", ondelete="CASCADE"), nullable=False, index=True)
    defendant_number = Column(Integer, nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    is_policyholder = Column(Boolean, nullable=False, default=False)
    policyholder_first_name = Column(String(100), nullable=True)
    policyholder_last_name = Column(String(100), nullable=True)
    auto_insurance_id = Column(Integer, ForeignKey("auto_insurance.id"), nullable=True)
    policy_number = Column(String(100), nullable=True)
    liability_percentage = Column(Integer, nullable=False, default=100)
    notes = Column(Text, nullable=True)

    # Non-owning link to another defendant of the same case
    related_to_defendant_id = Column(Integer, ForeignKey("defendants.id"), nullable=True)
    relationship_type = Column(String(50), nullable=True)

    created_at = Column(TIMESTAMP, nullable=False, default=utcnow)

    casefile = relationship("Casefile", back_populates="defendants")
    related_to = relationship("Defendant", remote_side=[id])
    third_party_claims = relationship("ThirdPartyClaim", back_populates="defendant", cascade="all, delete-orphan")


class FirstPartyClaim(Base):
    __tablename__ = "first_party_claims"

    id = Column(Integer, primary_key=True, autoincrement=True)
    casefile_id = Column(Integer, ForeignKey("casefiles.id", ondelete="CASCADE"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    auto_insurance_id = Column(Integer, ForeignKey("auto_insurance.id"), nullable=False)
    policy_number = Column(String(100), nullable=True)
    claim_number = Column(String(100), nullable=True)

    # Coverage
    has_medpay = Column(Boolean, nullable=False, default=False)
    medpay_amount = Column(String(50), nullable=True)
    has_um_coverage = Column(Boolean, nullable=False, default=False)
    um_amount = Column(String(50), nullable=True)
    pip_available = Column(Numeric(12, 2), nullable=False, default=0)
    pip_used = Column(Numeric(12, 2), nullable=False, default=0)
    medpay_available = Column(Numeric(12, 2), nullable=False, default=0)
    medpay_used = Column(Numeric(12, 2), nullable=False, default=0)

    # Tracking
    lor_sent = Column(Boolean, nullable=False, default=False)
    loa_received = Column(Boolean, nullable=False, default=False)
    dec_sheets_received = Column(Boolean, nullable=False, default=False)

    created_at = Column(TIMESTAMP, nullable=False, default=utcnow)

    client = relationship("Client", back_populates="first_party_claims")


class ThirdPartyClaim(Base):
    __tablename__ = "third_party_claims"

    id = Column(Integer, primary_key=True, autoincrement=True)
    defendant_id = Column(Integer, ForeignKey("defendants.id", ondelete="CASCADE"), nullable=False, index=True)
    auto_insurance_id = Column(Integer, ForeignKey("auto_insurance.id"), nullable=False)
    claim_number = Column(String(100), nullable=True)
    lor_sent = Column(Boolean, nullable=False, default=False)
    loa_received = Column(Boolean, nullable=False, default=False)
    demand_amount = Column(Numeric(12, 2), nullable=False, default=0)
    offer_amount = Column(Numeric(12, 2), nullable=False, default=0)
    created_at = Column(TIMESTAMP, nullable=False, default=utcnow)

    defendant = relationship("Defendant", back_populates="third_party_claims")
    adjusters = relationship("AutoAdjuster", back_populates="third_party_claim")


class HealthClaim(Base):
    __tablename__ = "health_claims"

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_id = Column(Integer, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    health_insurance_id = Column(Integer, ForeignKey("health_insurance.id"), nullable=False)
    member_id = Column(String(100), nullable=True)
    hipaa_sent = Column(Boolean, nullable=False, default=False)
    lor_sent = Column(Boolean, nullable=False, default=False)
    log_received = Column(Boolean, nullable=False, default=False)
    created_at = Column(TIMESTAMP, nullable=False, default=utcnow)

    client = relationship("Client", back_populates="health_claims")


class MedicalBill(Base):
    """Bill stub per (client, provider); financial fields start at zero"""
    __tablename__ = "medical_bills"

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_id = Column(Integer, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    medical_provider_id = Column(Integer, ForeignKey("medical_providers.id"), nullable=False, index=True)

    # Status flags
    hipaa_sent = Column(Boolean, nullable=False, default=False)
    bill_received = Column(Boolean, nullable=False, default=False)
    records_received = Column(Boolean, nullable=False, default=False)
    lien_filed = Column(Boolean, nullable=False, default=False)
    in_collections = Column(Boolean, nullable=False, default=False)

    # Financials
    total_billed = Column(Numeric(12, 2), nullable=False, default=0)
    insurance_paid = Column(Numeric(12, 2), nullable=False, default=0)
    insurance_adjusted = Column(Numeric(12, 2), nullable=False, default=0)
    medpay_paid = Column(Numeric(12, 2), nullable=False, default=0)
    patient_paid = Column(Numeric(12, 2), nullable=False, default=0)
    reduction_amount = Column(Numeric(12, 2), nullable=False, default=0)
    pi_expense = Column(Numeric(12, 2), nullable=False, default=0)

    created_at = Column(TIMESTAMP, nullable=False, default=utcnow)

    client = relationship("Client", back_populates="medical_bills")
    medical_provider = relationship("MedicalProvider")


class WorkLog(Base):
    __tablename__ = "work_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    casefile_id = Column(Integer, ForeignKey("casefiles.id", ondelete="CASCADE"), nullable=True, index=True)
    description = Column(Text, nullable=False)
    user_name = Column(String(100), nullable=False)
    timestamp = Column(TIMESTAMP, nullable=False, default=utcnow)

    casefile = relationship("Casefile", back_populates="work_logs")

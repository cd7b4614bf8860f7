# counsel_intake/models/extracted.py
"""
Typed tree of everything an intake can capture.

Every field is optional. The wire/storage shape uses camelCase keys
(`personalInfo.firstName`), the Python side uses snake_case attributes.
`model_fields_set` is what tells a merge which keys a tree actually carries.
"""
from __future__ import annotations

import copy
import logging
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

logger = logging.getLogger("intake.models.extracted")


class IntakeModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        coerce_numbers_to_str=True,
    )


# ---------- Personal ----------
class PersonalInfo(IntakeModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    middle_name: Optional[str] = None
    preferred_name: Optional[str] = None
    full_name: Optional[str] = None
    date_of_birth: Optional[str] = None
    place_of_birth: Optional[str] = None
    nationality: Optional[str] = None
    marital_status: Optional[str] = None
    ssn: Optional[str] = None
    gender: Optional[str] = None
    occupation: Optional[str] = None
    employer: Optional[str] = None
    annual_income: Optional[float] = None


# ---------- Contact ----------
class Address(IntakeModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None


class CurrentAddress(Address):
    residency_duration: Optional[str] = None
    is_mailing_address: Optional[bool] = None


class PreviousAddress(Address):
    from_date: Optional[str] = None
    to_date: Optional[str] = None


class EmergencyContact(IntakeModel):
    name: Optional[str] = None
    relationship: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None


class ContactInfo(IntakeModel):
    email: Optional[str] = None
    phone: Optional[str] = None
    alternate_phone: Optional[str] = None
    current_address: Optional[CurrentAddress] = None
    mailing_address: Optional[Address] = None
    previous_addresses: Optional[List[PreviousAddress]] = None
    emergency_contact: Optional[EmergencyContact] = None


# ---------- Case ----------
class PreviousLegalIssue(IntakeModel):
    case_type: Optional[str] = None
    description: Optional[str] = None
    outcome: Optional[str] = None
    date: Optional[str] = None
    attorney: Optional[str] = None
    court: Optional[str] = None


class LegalProceeding(IntakeModel):
    case_number: Optional[str] = None
    court: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    next_hearing: Optional[str] = None


class ImportantDate(IntakeModel):
    title: Optional[str] = None
    date: Optional[str] = None
    type: Optional[str] = None
    notes: Optional[str] = None


class CaseInfo(IntakeModel):
    case_type: Optional[str] = None
    sub_case_type: Optional[str] = None
    urgency: Optional[str] = None
    description: Optional[str] = None
    detailed_description: Optional[str] = None
    incident_details: Optional[str] = None
    desired_outcome: Optional[str] = None
    other_parties: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    assigned_lawyer: Optional[str] = None
    referral_source: Optional[str] = None
    previous_legal_issues: Optional[List[PreviousLegalIssue]] = None
    current_legal_proceedings: Optional[List[LegalProceeding]] = None
    important_dates: Optional[List[ImportantDate]] = None


# ---------- Immigration ----------
class Spouse(IntakeModel):
    name: Optional[str] = None
    citizenship: Optional[str] = None
    immigration_status: Optional[str] = None
    date_of_birth: Optional[str] = None
    marriage_date: Optional[str] = None
    marriage_location: Optional[str] = None


class Child(IntakeModel):
    name: Optional[str] = None
    date_of_birth: Optional[str] = None
    place_of_birth: Optional[str] = None
    citizenship: Optional[str] = None
    immigration_status: Optional[str] = None
    relationship: Optional[str] = None


class Parent(IntakeModel):
    name: Optional[str] = None
    date_of_birth: Optional[str] = None
    place_of_birth: Optional[str] = None
    citizenship: Optional[str] = None
    immigration_status: Optional[str] = None
    is_deceased: Optional[bool] = None


class Trip(IntakeModel):
    country: Optional[str] = None
    purpose: Optional[str] = None
    departure_date: Optional[str] = None
    return_date: Optional[str] = None
    duration: Optional[str] = None


class StatusPeriod(IntakeModel):
    status: Optional[str] = None
    from_date: Optional[str] = None
    to_date: Optional[str] = None
    notes: Optional[str] = None


class ImmigrationInfo(IntakeModel):
    current_status: Optional[str] = None
    visa_type: Optional[str] = None
    visa_expiry_date: Optional[str] = None
    i94_number: Optional[str] = None
    arrival_date: Optional[str] = None
    port_of_entry: Optional[str] = None
    spouse: Optional[Spouse] = None
    children: Optional[List[Child]] = None
    parents: Optional[List[Parent]] = None
    travel_history: Optional[List[Trip]] = None
    immigration_history: Optional[List[StatusPeriod]] = None


# ---------- Criminal ----------
class Arrest(IntakeModel):
    date: Optional[str] = None
    charges: Optional[str] = None
    location: Optional[str] = None
    outcome: Optional[str] = None
    details: Optional[str] = None


class Conviction(IntakeModel):
    date: Optional[str] = None
    charge: Optional[str] = None
    sentence: Optional[str] = None
    location: Optional[str] = None
    completed: Optional[bool] = None


class PendingCharge(IntakeModel):
    charge: Optional[str] = None
    court: Optional[str] = None
    next_hearing: Optional[str] = None
    attorney: Optional[str] = None


class CriminalHistory(IntakeModel):
    has_arrest_history: Optional[bool] = None
    arrests: Optional[List[Arrest]] = None
    has_convictions: Optional[bool] = None
    convictions: Optional[List[Conviction]] = None
    has_pending_charges: Optional[bool] = None
    pending_charges: Optional[List[PendingCharge]] = None


# ---------- Financial ----------
class Asset(IntakeModel):
    type: Optional[str] = None
    value: Optional[float] = None
    description: Optional[str] = None


class Liability(IntakeModel):
    type: Optional[str] = None
    amount: Optional[float] = None
    creditor: Optional[str] = None
    monthly_payment: Optional[float] = None


class BankingInfo(IntakeModel):
    bank_name: Optional[str] = None
    account_type: Optional[str] = None
    routing_number: Optional[str] = None
    account_number: Optional[str] = None


class FinancialInfo(IntakeModel):
    annual_income: Optional[float] = None
    employment_status: Optional[str] = None
    employer: Optional[str] = None
    job_title: Optional[str] = None
    employment_duration: Optional[str] = None
    assets: Optional[List[Asset]] = None
    liabilities: Optional[List[Liability]] = None
    banking_info: Optional[BankingInfo] = None


# ---------- Medical ----------
class Disability(IntakeModel):
    type: Optional[str] = None
    description: Optional[str] = None
    accommodations_needed: Optional[str] = None


class MentalHealthHistory(IntakeModel):
    has_history: Optional[bool] = None
    details: Optional[str] = None
    current_treatment: Optional[bool] = None


class MedicalInfo(IntakeModel):
    has_disabilities: Optional[bool] = None
    disabilities: Optional[List[Disability]] = None
    mental_health_history: Optional[MentalHealthHistory] = None


# ---------- Communication / consents ----------
class CommunicationPreferences(IntakeModel):
    preferred_method: Optional[str] = None
    language_preference: Optional[str] = None
    needs_interpreter: Optional[bool] = None
    interpreter_language: Optional[str] = None
    best_time_to_call: Optional[str] = None
    time_zone: Optional[str] = None
    communication_notes: Optional[str] = None


class SignedConsent(IntakeModel):
    signed: Optional[bool] = None
    signed_date: Optional[str] = None
    signed_by: Optional[str] = None


class AcceptedConsent(IntakeModel):
    accepted: Optional[bool] = None
    accepted_date: Optional[str] = None


class AuthorizedConsent(IntakeModel):
    authorized: Optional[bool] = None
    authorized_date: Optional[str] = None


class Consents(IntakeModel):
    attorney_client_agreement: Optional[SignedConsent] = None
    privacy_policy: Optional[AcceptedConsent] = None
    background_check: Optional[AuthorizedConsent] = None
    document_sharing: Optional[AuthorizedConsent] = None


class DocumentMention(IntakeModel):
    """A document the client says they have; uploads are tracked separately."""
    name: Optional[str] = None
    description: Optional[str] = None
    has_copy: Optional[bool] = None


class ExtractedData(IntakeModel):
    personal_info: Optional[PersonalInfo] = None
    contact_info: Optional[ContactInfo] = None
    case_info: Optional[CaseInfo] = None
    immigration_info: Optional[ImmigrationInfo] = None
    criminal_history: Optional[CriminalHistory] = None
    financial_info: Optional[FinancialInfo] = None
    medical_info: Optional[MedicalInfo] = None
    communication_preferences: Optional[CommunicationPreferences] = None
    consents: Optional[Consents] = None
    documents: Optional[List[DocumentMention]] = None


# ---------- Parsing / dumping ----------
_DROPPED = object()
_MAX_REPAIR_PASSES = 10


def _drop_path(tree: Any, loc: tuple) -> bool:
    node = tree
    for part in loc[:-1]:
        if isinstance(node, dict) and part in node:
            node = node[part]
        elif isinstance(node, list) and isinstance(part, int) and 0 <= part < len(node):
            node = node[part]
        else:
            return False
    last = loc[-1]
    if isinstance(node, dict) and last in node:
        del node[last]
        return True
    if isinstance(node, list) and isinstance(last, int) and 0 <= last < len(node):
        node[last] = _DROPPED
        return True
    return False


def _compact(tree: Any) -> Any:
    if isinstance(tree, dict):
        return {k: _compact(v) for k, v in tree.items()}
    if isinstance(tree, list):
        return [_compact(v) for v in tree if v is not _DROPPED]
    return tree


def parse_extracted(raw: Any) -> ExtractedData:
    """
    Lenient parse of an untrusted tree (LLM reply, form post, stored JSON).

    Values that fail validation are dropped one path at a time and the rest
    is kept, so one malformed field never discards a whole reply.
    """
    if isinstance(raw, ExtractedData):
        return raw
    if not isinstance(raw, dict):
        if raw is not None:
            logger.warning("extracted data is not an object (type=%s); ignoring", type(raw).__name__)
        return ExtractedData()

    tree = copy.deepcopy(raw)
    for _ in range(_MAX_REPAIR_PASSES):
        try:
            return ExtractedData.model_validate(tree)
        except ValidationError as e:
            dropped = 0
            for err in e.errors():
                loc = tuple(err.get("loc") or ())
                if loc and _drop_path(tree, loc):
                    dropped += 1
                    logger.warning("dropping invalid extracted field %s: %s", ".".join(map(str, loc)), err.get("msg"))
            if not dropped:
                break
            tree = _compact(tree)
    logger.warning("extracted data could not be repaired; ignoring it")
    return ExtractedData()


def dump_extracted(data: ExtractedData) -> dict:
    """Storage/wire shape: camelCase keys, only the keys the tree carries."""
    return data.model_dump(mode="json", by_alias=True, exclude_unset=True)


def resolve_field_path(path: str) -> bool:
    """True when a dot-notation camelCase path names a field of ExtractedData."""
    model: Any = ExtractedData
    for part in path.split("."):
        if model is None:
            return False
        match = None
        for name, info in model.model_fields.items():
            if part in (info.alias, name):
                match = info
                break
        if match is None:
            return False
        model = _model_of(match.annotation)
    return True


def _model_of(annotation: Any):
    """Unwrap Optional[...] / List[...] down to an IntakeModel subclass, if any."""
    if isinstance(annotation, type) and issubclass(annotation, IntakeModel):
        return annotation
    for arg in getattr(annotation, "__args__", ()) or ():
        found = _model_of(arg)
        if found is not None:
            return found
    return None

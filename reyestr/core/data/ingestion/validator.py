"""Validation and normalisation of raw registry records."""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from enum import Enum

from reyestr.core.models import (
    DEFAULT_KEY_FIELD,
    NAME_FIELD,
    Category,
    LegalEntity,
    ParsedEntity,
    PublicAssociation,
    RawRecord,
    SoleProprietor,
    SubMap,
)

_EDRPOU_RE = re.compile(r"^\d{8}$")
_DATE_RE = re.compile(r"\b(\d{2})\.(\d{2})\.(\d{4})\b")
_ISO_DATE_RE = re.compile(r"\b(\d{4})-(\d{2})-(\d{2})\b")
_FUTURE_TOLERANCE = timedelta(days=365)
_TRUE_FLAGS = {"так", "yes", "true", "1"}
_FALSE_FLAGS = {"ні", "no", "false", "0"}


class InvalidReason(str, Enum):
    """Why a record was skipped instead of imported."""

    MISSING_KEY = "missing_key"
    MISSING_NAME = "missing_name"
    MALFORMED_FIELD = "malformed_field"


REQUIRED_FIELDS: dict[Category, tuple[str, ...]] = {
    Category.LEGAL_ENTITY: (DEFAULT_KEY_FIELD, NAME_FIELD),
    Category.SOLE_PROPRIETOR: (DEFAULT_KEY_FIELD, NAME_FIELD),
    Category.PUBLIC_ASSOCIATION: (DEFAULT_KEY_FIELD, NAME_FIELD),
}


@dataclass(slots=True, frozen=True)
class ValidationResult:
    """Either a typed entity or the reason the record was rejected."""

    entity: ParsedEntity | None = None
    reason: InvalidReason | None = None
    detail: str = ""
    warnings: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if (self.entity is None) == (self.reason is None):
            raise ValueError("ValidationResult needs exactly one of entity or reason")

    @property
    def ok(self) -> bool:
        return self.entity is not None


class _Rejected(Exception):
    def __init__(self, reason: InvalidReason, detail: str) -> None:
        super().__init__(detail)
        self.reason = reason
        self.detail = detail


class _FieldReader:
    """Typed accessors over one raw record, collecting non-fatal warnings."""

    def __init__(self, record: RawRecord, reference_date: date) -> None:
        self.record = record
        self.reference_date = reference_date
        self.warnings: list[str] = []

    def scalar(self, name: str) -> str | None:
        if self.record.items_of(name):
            raise _Rejected(InvalidReason.MALFORMED_FIELD, f"{name} must be text, got nested elements")
        return self.record.text(name) or None

    def required(self, name: str, reason: InvalidReason) -> str:
        value = self.scalar(name)
        if value is None:
            raise _Rejected(reason, f"{name} is required")
        return value

    def strings(self, container: str, item: str) -> tuple[str, ...]:
        text = self.record.text(container)
        if text is not None:
            return (text,)
        items = []
        for entry in self.record.items_of(container):
            text = entry.get(item) or "; ".join(entry.values())
            if text:
                items.append(text)
        return tuple(items)

    def maps(self, container: str) -> tuple[SubMap, ...]:
        if self.record.text(container) is not None:
            self.warnings.append(f"{container} has text instead of nested elements; ignored")
            return ()
        return tuple(dict(entry) for entry in self.record.items_of(container))

    def single_map(self, container: str) -> SubMap | None:
        merged: SubMap = {}
        for entry in self.maps(container):
            for key, text in entry.items():
                merged.setdefault(key, text)
        return merged or None

    def edrpou(self) -> str | None:
        value = self.scalar("EDRPOU")
        if value is not None and not _EDRPOU_RE.match(value):
            raise _Rejected(InvalidReason.MALFORMED_FIELD, f"EDRPOU must be 8 digits, got {value!r}")
        return value

    def capital(self) -> Decimal | None:
        value = self.scalar("AUTHORIZED_CAPITAL")
        if value is None:
            return None
        cleaned = re.sub(r"\s+", "", value).replace(",", ".")
        try:
            amount = Decimal(cleaned)
        except InvalidOperation:
            amount = None
        if amount is None or not amount.is_finite():
            self.warnings.append(f"AUTHORIZED_CAPITAL {value!r} is not a number; dropped")
            return None
        return amount

    def dated(self, name: str) -> str | None:
        value = self.scalar(name)
        if value is None:
            return None
        limit = self.reference_date + _FUTURE_TOLERANCE
        found = [(year, month, day) for day, month, year in _DATE_RE.findall(value)]
        found += _ISO_DATE_RE.findall(value)
        for year, month, day in found:
            try:
                parsed = date(int(year), int(month), int(day))
            except ValueError:
                self.warnings.append(f"{name} contains an impossible date {year}-{month}-{day}")
                continue
            if parsed > limit:
                self.warnings.append(f"{name} date {parsed.isoformat()} is more than a year ahead")
        return value

    def flag(self, name: str) -> bool | None:
        value = self.scalar(name)
        if value is None:
            return None
        lowered = value.lower()
        if lowered in _TRUE_FLAGS:
            return True
        if lowered in _FALSE_FLAGS:
            return False
        self.warnings.append(f"{name} value {value!r} is not a yes/no flag; dropped")
        return None


def _identity(reader: _FieldReader, key_field: str) -> tuple[str, str]:
    key = reader.required(key_field, InvalidReason.MISSING_KEY)
    name = reader.required(NAME_FIELD, InvalidReason.MISSING_NAME)
    return key, name


def validate_legal_entity(reader: _FieldReader, key_field: str) -> LegalEntity:
    key, name = _identity(reader, key_field)
    return LegalEntity(
        natural_key=key,
        name=name,
        status=reader.scalar("STAN"),
        edrpou=reader.edrpou(),
        short_name=reader.scalar("SHORT_NAME"),
        legal_form=reader.scalar("OPF"),
        authorized_capital=reader.capital(),
        founding_document_num=reader.scalar("FOUNDING_DOCUMENT_NUM"),
        purpose=reader.scalar("PURPOSE"),
        superior_management=reader.scalar("SUPERIOR_MANAGEMENT"),
        statute=reader.scalar("STATUTE"),
        registration=reader.dated("REGISTRATION"),
        managing_paper=reader.scalar("MANAGING_PAPER"),
        terminated_info=reader.dated("TERMINATED_INFO"),
        termination_cancel_info=reader.scalar("TERMINATION_CANCEL_INFO"),
        founders=reader.strings("FOUNDERS", "FOUNDER"),
        beneficiaries=reader.strings("BENEFICIARIES", "BENEFICIARY"),
        signers=reader.strings("SIGNERS", "SIGNER"),
        members=reader.strings("MEMBERS", "MEMBER"),
        branches=reader.maps("BRANCHES"),
        predecessors=reader.maps("PREDECESSORS"),
        assignees=reader.maps("ASSIGNEES"),
        exchange_data=reader.maps("EXCHANGE_DATA"),
        executive_power=reader.single_map("EXECUTIVE_POWER"),
        termination_started=reader.single_map("TERMINATION_STARTED_INFO"),
        bankruptcy_info=reader.single_map("BANKRUPTCY_READJUSTMENT_INFO"),
    )


def validate_sole_proprietor(reader: _FieldReader, key_field: str) -> SoleProprietor:
    key, name = _identity(reader, key_field)
    return SoleProprietor(
        natural_key=key,
        name=name,
        status=reader.scalar("STAN"),
        farmer=reader.flag("FARMER"),
        estate_manager=reader.scalar("ESTATE_MANAGER"),
        registration=reader.dated("REGISTRATION"),
        terminated_info=reader.dated("TERMINATED_INFO"),
        termination_cancel_info=reader.scalar("TERMINATION_CANCEL_INFO"),
        exchange_data=reader.maps("EXCHANGE_DATA"),
    )


def validate_public_association(reader: _FieldReader, key_field: str) -> PublicAssociation:
    key, name = _identity(reader, key_field)
    return PublicAssociation(
        natural_key=key,
        name=name,
        status=reader.scalar("STAN"),
        edrpou=reader.edrpou(),
        short_name=reader.scalar("SHORT_NAME"),
        type_subject=reader.scalar("TYPE_SUBJECT"),
        type_branch=reader.scalar("TYPE_BRANCH"),
        founding_document=reader.scalar("FOUNDING_DOCUMENT"),
        registration=reader.dated("REGISTRATION"),
        terminated_info=reader.dated("TERMINATED_INFO"),
        termination_cancel_info=reader.scalar("TERMINATION_CANCEL_INFO"),
        founders=reader.strings("FOUNDERS", "FOUNDER"),
        beneficiaries=reader.strings("BENEFICIARIES", "BENEFICIARY"),
        signers=reader.strings("SIGNERS", "SIGNER"),
        predecessors=reader.maps("PREDECESSORS"),
        termination_started=reader.single_map("TERMINATION_STARTED_INFO"),
        exchange_data=reader.maps("EXCHANGE_DATA"),
    )


VALIDATORS: dict[Category, Callable[[_FieldReader, str], ParsedEntity]] = {
    Category.LEGAL_ENTITY: validate_legal_entity,
    Category.SOLE_PROPRIETOR: validate_sole_proprietor,
    Category.PUBLIC_ASSOCIATION: validate_public_association,
}


def required_fields(category: Category, key_field: str = DEFAULT_KEY_FIELD) -> tuple[str, ...]:
    """Required field names of ``category`` with the key field substituted."""

    return tuple(key_field if name == DEFAULT_KEY_FIELD else name for name in REQUIRED_FIELDS[category])


def validate(
    record: RawRecord,
    category: Category,
    *,
    key_field: str = DEFAULT_KEY_FIELD,
    reference_date: date | None = None,
) -> ValidationResult:
    """Turn ``record`` into the entity variant of ``category`` or reject it.

    The key field is checked before the name, so a record lacking both is
    reported as ``missing_key``. Problems with optional attributes that do
    not make the record unusable are returned as warnings.
    """

    reader = _FieldReader(record, reference_date or datetime.now().date())
    try:
        for field_name in required_fields(category, key_field):
            missing = InvalidReason.MISSING_KEY if field_name == key_field else InvalidReason.MISSING_NAME
            reader.required(field_name, missing)
        entity = VALIDATORS[category](reader, key_field)
    except _Rejected as rejected:
        return ValidationResult(reason=rejected.reason, detail=rejected.detail)
    return ValidationResult(entity=entity, warnings=tuple(reader.warnings))


__all__ = [
    "InvalidReason",
    "REQUIRED_FIELDS",
    "VALIDATORS",
    "ValidationResult",
    "required_fields",
    "validate",
]

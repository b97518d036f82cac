"""Raw and typed registry records."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field, fields
from decimal import Decimal
from typing import Any, ClassVar, TypeAlias

from reyestr.core.models.categories import Category

SubMap: TypeAlias = dict[str, str]
FieldValue: TypeAlias = str | list[SubMap]


@dataclass(slots=True)
class RawRecord:
    """Field-name to text mapping of one record element, before coercion.

    Container fields (elements with child elements) hold an ordered list of
    sub-maps instead of text.
    """

    index: int
    fields: dict[str, FieldValue] = field(default_factory=dict)

    def text(self, name: str) -> str | None:
        value = self.fields.get(name)
        return value if isinstance(value, str) else None

    def items_of(self, name: str) -> list[SubMap]:
        value = self.fields.get(name)
        return value if isinstance(value, list) else []


def _to_json_ready(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (tuple, list)):
        return [_to_json_ready(item) for item in value]
    if isinstance(value, dict):
        return {key: _to_json_ready(item) for key, item in value.items()}
    return value


class _EntityMixin:
    """Shared behaviour of the entity variants."""

    __slots__ = ()

    _IDENTITY_FIELDS: ClassVar[frozenset[str]] = frozenset({"natural_key", "name", "status"})

    def payload(self) -> dict[str, Any]:
        """Non-indexed attributes as a JSON-ready mapping, ``None`` values omitted."""

        result: dict[str, Any] = {}
        for item in fields(self):  # type: ignore[arg-type]
            if item.name in self._IDENTITY_FIELDS:
                continue
            value = getattr(self, item.name)
            if value is None or value == ():
                continue
            result[item.name] = _to_json_ready(value)
        return result

    def content_hash(self) -> str:
        """Stable digest of everything the upsert would write."""

        document = {
            "name": getattr(self, "name"),
            "status": getattr(self, "status"),
            "payload": self.payload(),
        }
        encoded = json.dumps(document, sort_keys=True, ensure_ascii=False).encode("utf-8")
        return hashlib.md5(encoded).hexdigest()


@dataclass(frozen=True, slots=True)
class LegalEntity(_EntityMixin):
    category: ClassVar[Category] = Category.LEGAL_ENTITY

    natural_key: str
    name: str
    status: str | None = None
    edrpou: str | None = None
    short_name: str | None = None
    legal_form: str | None = None
    authorized_capital: Decimal | None = None
    founding_document_num: str | None = None
    purpose: str | None = None
    superior_management: str | None = None
    statute: str | None = None
    registration: str | None = None
    managing_paper: str | None = None
    terminated_info: str | None = None
    termination_cancel_info: str | None = None
    founders: tuple[str, ...] = ()
    beneficiaries: tuple[str, ...] = ()
    signers: tuple[str, ...] = ()
    members: tuple[str, ...] = ()
    branches: tuple[SubMap, ...] = ()
    predecessors: tuple[SubMap, ...] = ()
    assignees: tuple[SubMap, ...] = ()
    exchange_data: tuple[SubMap, ...] = ()
    executive_power: SubMap | None = None
    termination_started: SubMap | None = None
    bankruptcy_info: SubMap | None = None


@dataclass(frozen=True, slots=True)
class SoleProprietor(_EntityMixin):
    category: ClassVar[Category] = Category.SOLE_PROPRIETOR

    natural_key: str
    name: str
    status: str | None = None
    farmer: bool | None = None
    estate_manager: str | None = None
    registration: str | None = None
    terminated_info: str | None = None
    termination_cancel_info: str | None = None
    exchange_data: tuple[SubMap, ...] = ()


@dataclass(frozen=True, slots=True)
class PublicAssociation(_EntityMixin):
    category: ClassVar[Category] = Category.PUBLIC_ASSOCIATION

    natural_key: str
    name: str
    status: str | None = None
    edrpou: str | None = None
    short_name: str | None = None
    type_subject: str | None = None
    type_branch: str | None = None
    founding_document: str | None = None
    registration: str | None = None
    terminated_info: str | None = None
    termination_cancel_info: str | None = None
    founders: tuple[str, ...] = ()
    beneficiaries: tuple[str, ...] = ()
    signers: tuple[str, ...] = ()
    predecessors: tuple[SubMap, ...] = ()
    termination_started: SubMap | None = None
    exchange_data: tuple[SubMap, ...] = ()


ParsedEntity: TypeAlias = LegalEntity | SoleProprietor | PublicAssociation


@dataclass(frozen=True, slots=True)
class ImportBatch:
    """Ordered window of entities of a single category, applied as one transaction."""

    category: Category
    sequence: int
    entities: tuple[ParsedEntity, ...]

    def __len__(self) -> int:
        return len(self.entities)

    @property
    def natural_keys(self) -> list[str]:
        return [entity.natural_key for entity in self.entities]


__all__ = [
    "FieldValue",
    "ImportBatch",
    "LegalEntity",
    "ParsedEntity",
    "PublicAssociation",
    "RawRecord",
    "SoleProprietor",
    "SubMap",
]

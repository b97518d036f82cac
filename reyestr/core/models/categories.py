"""Registry categories and their per-category layout."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

DEFAULT_RECORD_TAG = "RECORD"
DEFAULT_KEY_FIELD = "RECORD_NUMBER"
NAME_FIELD = "NAME"


class Category(str, Enum):
    """The three record kinds published in one registry snapshot."""

    LEGAL_ENTITY = "legal_entities"
    SOLE_PROPRIETOR = "sole_proprietors"
    PUBLIC_ASSOCIATION = "public_associations"

    @property
    def short_code(self) -> str:
        return _SHORT_CODES[self]

    @classmethod
    def parse(cls, value: str | Category) -> Category:
        """Accept enum values, member names or registry short codes (UO, FOP, FSU)."""

        if isinstance(value, Category):
            return value
        normalized = value.strip()
        for category in cls:
            if normalized.lower() in {category.value, category.name.lower()}:
                return category
            if normalized.upper() == category.short_code:
                return category
        raise ValueError(f"unknown registry category '{value}'")


_SHORT_CODES = {
    Category.LEGAL_ENTITY: "UO",
    Category.SOLE_PROPRIETOR: "FOP",
    Category.PUBLIC_ASSOCIATION: "FSU",
}

DEFAULT_MEMBER_NAMES: dict[Category, str] = {
    Category.LEGAL_ENTITY: "UO_FULL_out.xml",
    Category.SOLE_PROPRIETOR: "FOP_FULL_out.xml",
    Category.PUBLIC_ASSOCIATION: "FSU_FULL_out.xml",
}


@dataclass(frozen=True, slots=True)
class CategorySpec:
    """Where a category lives in the archive, how its records look, where it is stored."""

    category: Category
    member_name: str
    table_name: str
    record_tag: str = DEFAULT_RECORD_TAG
    key_field: str = DEFAULT_KEY_FIELD
    mandatory: bool = False

    def with_overrides(self, **changes: object) -> CategorySpec:
        return replace(self, **changes)


def default_specs() -> dict[Category, CategorySpec]:
    """Specs for the registry's standard archive layout, in processing order."""

    return {
        category: CategorySpec(
            category=category,
            member_name=DEFAULT_MEMBER_NAMES[category],
            table_name=category.value,
        )
        for category in Category
    }


__all__ = [
    "Category",
    "CategorySpec",
    "DEFAULT_KEY_FIELD",
    "DEFAULT_MEMBER_NAMES",
    "DEFAULT_RECORD_TAG",
    "NAME_FIELD",
    "default_specs",
]

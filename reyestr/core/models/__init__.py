"""Domain models of the registry pipeline."""

from reyestr.core.models.categories import (
    DEFAULT_KEY_FIELD,
    DEFAULT_MEMBER_NAMES,
    DEFAULT_RECORD_TAG,
    NAME_FIELD,
    Category,
    CategorySpec,
    default_specs,
)
from reyestr.core.models.records import (
    FieldValue,
    ImportBatch,
    LegalEntity,
    ParsedEntity,
    PublicAssociation,
    RawRecord,
    SoleProprietor,
    SubMap,
)
from reyestr.core.models.run import CategoryState, ImportRun, RunReport

__all__ = [
    "Category",
    "CategorySpec",
    "CategoryState",
    "DEFAULT_KEY_FIELD",
    "DEFAULT_MEMBER_NAMES",
    "DEFAULT_RECORD_TAG",
    "FieldValue",
    "ImportBatch",
    "ImportRun",
    "LegalEntity",
    "NAME_FIELD",
    "ParsedEntity",
    "PublicAssociation",
    "RawRecord",
    "RunReport",
    "SoleProprietor",
    "SubMap",
    "default_specs",
]

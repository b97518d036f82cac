"""Exit codes and column sets shared by CLI commands."""

VALIDATION_EXIT_CODE = 2
STORE_EXIT_CODE = 3
NOT_FOUND_EXIT_CODE = 4

SUMMARY_COLUMNS = [
    "category",
    "state",
    "parsed",
    "imported",
    "inserted",
    "updated",
    "unchanged",
    "skipped_invalid",
    "failed_batches",
    "elapsed_s",
    "error",
]

SEARCH_COLUMNS = ["natural_key", "name", "status", "last_imported_at"]

SHOW_COLUMNS = [
    "id",
    "category",
    "natural_key",
    "name",
    "status",
    "first_imported_at",
    "last_imported_at",
    "payload",
]

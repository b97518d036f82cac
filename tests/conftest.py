"""Pytest configuration and shared fixtures for the reyestr test suite."""

from __future__ import annotations

import zipfile
from collections.abc import Callable, Iterable, Iterator
from pathlib import Path
from xml.sax.saxutils import escape

import pytest

from reyestr.core.config import StoreConfig
from reyestr.core.data.storage import RegistryStore
from reyestr.core.logging import configure_logging
from reyestr.core.models import Category, CategorySpec, default_specs


def pytest_addoption(parser: pytest.Parser) -> None:
    """Register command-line options for controlling integration tests."""

    parser.addoption(
        "--reyestr-run-integration",
        action="store_true",
        default=False,
        help="Run reyestr integration tests that generate large archives.",
    )


def pytest_configure(config: pytest.Config) -> None:
    """Register the integration marker for reyestr tests."""

    config.addinivalue_line(
        "markers",
        "integration: marks reyestr tests that generate large archives",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip integration tests unless explicitly requested."""

    if config.getoption("--reyestr-run-integration"):
        return

    skip_integration = pytest.mark.skip(
        reason="integration tests require --reyestr-run-integration",
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    """Point log sinks back at the session stderr after each test."""

    yield
    configure_logging("WARNING")


def _record(key: str | None = None, name: str | None = None, extra: str = "", *, key_tag: str = "RECORD_NUMBER", tag: str = "RECORD") -> str:
    parts = [f"<{tag}>"]
    if key is not None:
        parts.append(f"<{key_tag}>{escape(key)}</{key_tag}>")
    if name is not None:
        parts.append(f"<NAME>{escape(name)}</NAME>")
    parts.append(extra)
    parts.append(f"</{tag}>")
    return "".join(parts)


def _document(records: Iterable[str], *, encoding: str = "UTF-8") -> bytes:
    body = "".join(records)
    text = f'<?xml version="1.0" encoding="{encoding}"?>\n<DATA FORMAT_VERSION="1.0">{body}</DATA>\n'
    return text.encode(encoding)


@pytest.fixture
def record_xml() -> Callable[..., str]:
    """Builder for one ``<RECORD>`` element: ``record_xml(key, name, extra_xml)``."""

    return _record


@pytest.fixture
def registry_xml() -> Callable[..., bytes]:
    """Builder wrapping record elements into a complete ``<DATA>`` document."""

    return _document


@pytest.fixture
def make_archive(tmp_path: Path) -> Callable[..., Path]:
    """Builder writing a snapshot zip from ``{member name: bytes}``."""

    def build(members: dict[str, bytes], name: str = "snapshot.zip") -> Path:
        path = tmp_path / name
        with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for member, payload in members.items():
                archive.writestr(member, payload)
        return path

    return build


@pytest.fixture
def specs() -> dict[Category, CategorySpec]:
    return default_specs()


@pytest.fixture
def legal_spec(specs: dict[Category, CategorySpec]) -> CategorySpec:
    return specs[Category.LEGAL_ENTITY]


@pytest.fixture
def memory_store() -> Iterator[RegistryStore]:
    store = RegistryStore.open(StoreConfig(database=":memory:"))
    try:
        yield store
    finally:
        store.close()

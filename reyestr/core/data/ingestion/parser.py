"""Incremental parser turning a registry XML stream into raw records.

The document is fed to an lxml push parser in fixed-size chunks. A parser
target receives the SAX-like events and assembles one record at a time; no
element tree is ever built, so memory stays bounded by the largest single
record plus one input chunk, whatever the document size.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable, Iterable
from contextlib import aclosing
from typing import IO, Any, TypeAlias

from lxml import etree

from reyestr.core.exceptions import MalformedXMLError
from reyestr.core.logging import get_logger
from reyestr.core.models import CategorySpec, FieldValue, RawRecord, SubMap

logger = get_logger(__name__)

DEFAULT_CHUNK_SIZE = 65536
DEFAULT_MAX_DEPTH = 32

ByteSource: TypeAlias = IO[bytes] | bytes | bytearray | AsyncIterable[bytes] | Iterable[bytes]
RecordHandler: TypeAlias = Callable[[RawRecord], Awaitable[Any]]


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1] if tag.startswith("{") else tag


def _normalise(parts: list[str]) -> str:
    return " ".join("".join(parts).split())


class _RecordCollector:
    """lxml parser target that assembles records from start/data/end events.

    Shape of a record, relative to its element:

    * a child without children is a leaf field stored as text
    * a child with children is a container stored as a list of sub-maps;
      grandchildren that have children of their own become one sub-map
      each, grandchild leaves share a sub-map until a tag repeats
    """

    def __init__(self, record_tag: str, max_depth: int) -> None:
        self.record_tag = record_tag
        self.max_depth = max_depth
        self.ready: deque[RawRecord] = deque()
        self.seen_element = False
        self.closing = False
        self._stack: list[str] = []
        self._has_children: list[bool] = []
        self._text: list[str] = []
        self._record_depth: int | None = None
        self._fields: dict[str, FieldValue] = {}
        self._container: list[SubMap] | None = None
        self._direct: SubMap | None = None
        self._group: SubMap | None = None
        self._count = 0

    @property
    def open_elements(self) -> int:
        return len(self._stack)

    @property
    def open_path(self) -> str:
        return "/".join(self._stack)

    @property
    def in_record(self) -> bool:
        return self._record_depth is not None

    def _relative_depth(self) -> int:
        assert self._record_depth is not None
        return len(self._stack) - 1 - self._record_depth

    def start(self, tag: str, attrib: Any) -> None:
        name = _local_name(tag)
        self.seen_element = True
        if self._has_children:
            self._has_children[-1] = True
        self._stack.append(name)
        self._has_children.append(False)
        self._text = []

        if len(self._stack) > self.max_depth:
            raise MalformedXMLError(
                f"element nesting deeper than {self.max_depth} at <{name}>",
                details={"path": "/".join(self._stack[:8])},
            )

        if self._record_depth is None:
            if name == self.record_tag:
                self._record_depth = len(self._stack) - 1
                self._fields = {}
            return

        if name == self.record_tag:
            if self.closing:
                # partial start tag flushed by close() on a truncated stream
                return
            raise MalformedXMLError(
                f"<{name}> nested inside another <{self.record_tag}> (record {self._count})"
            )

        depth = self._relative_depth()
        if depth == 1:
            self._container = None
            self._direct = None
            self._group = None
        elif depth == 2:
            parent = self._stack[-2]
            if self._container is None:
                existing = self._fields.get(parent)
                self._container = existing if isinstance(existing, list) else []
                self._fields[parent] = self._container
            self._group = None
        elif depth == 3 and self._group is None:
            self._group = {}
            self._direct = None
            assert self._container is not None
            self._container.append(self._group)

    def data(self, text: str) -> None:
        if self._record_depth is not None:
            self._text.append(text)

    def end(self, tag: str) -> None:
        name = self._stack[-1]
        had_children = self._has_children[-1]
        if self._record_depth is None:
            self._pop()
            return

        depth = self._relative_depth()
        text = "" if had_children else _normalise(self._text)
        self._text = []

        if depth == 0:
            self.ready.append(RawRecord(index=self._count, fields=self._fields))
            self._count += 1
            self._fields = {}
            self._record_depth = None
        elif depth == 1:
            if had_children:
                if not self._fields.get(name):
                    self._fields.pop(name, None)
            elif text:
                previous = self._fields.get(name)
                self._fields[name] = f"{previous}; {text}" if isinstance(previous, str) else text
            self._container = None
            self._direct = None
        elif depth == 2:
            if not had_children and text:
                if self._direct is None or name in self._direct:
                    self._direct = {}
                    assert self._container is not None
                    self._container.append(self._direct)
                self._direct[name] = text
            self._group = None
        elif text and self._group is not None:
            previous_text = self._group.get(name)
            self._group[name] = f"{previous_text}; {text}" if previous_text else text
        self._pop()

    def _pop(self) -> None:
        self._stack.pop()
        self._has_children.pop()

    def close(self) -> int:
        return self._count


async def _read_chunks(source: ByteSource, chunk_size: int) -> AsyncIterator[bytes]:
    if isinstance(source, (bytes, bytearray)):
        for offset in range(0, len(source), chunk_size):
            yield bytes(source[offset : offset + chunk_size])
    elif hasattr(source, "read"):
        while True:
            # decompression is blocking work; keep the event loop free
            chunk = await asyncio.to_thread(source.read, chunk_size)
            if not chunk:
                break
            yield chunk
    elif hasattr(source, "__aiter__"):
        async for chunk in source:
            yield chunk
    else:
        for chunk in source:
            yield chunk


def _malformed(exc: etree.XMLSyntaxError) -> MalformedXMLError:
    line, column = exc.position if exc.position else (None, None)
    return MalformedXMLError(
        f"malformed XML: {exc.msg}",
        line=line,
        column=column,
        details={"libxml2_code": exc.code},
    )


async def iter_records(
    source: ByteSource,
    spec: CategorySpec,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    max_depth: int = DEFAULT_MAX_DEPTH,
    encoding: str | None = None,
) -> AsyncIterator[RawRecord]:
    """Yield the records of ``source`` lazily, in document order.

    Input is read one chunk at a time and only after every record completed
    by the previous chunk has been consumed, so a slow consumer stalls the
    reader instead of growing a buffer.

    Args:
        source: Binary readable, bytes, or (async) iterable of byte chunks
        spec: Category layout providing the record element name
        chunk_size: Bytes requested from ``source`` per read
        max_depth: Maximum element nesting accepted in the document
        encoding: Overrides the encoding declared by the document

    Raises:
        MalformedXMLError: The tag structure is broken. A stream that simply
            ends inside an element is treated as truncated instead: the
            partial record is dropped and iteration ends normally.
    """

    if chunk_size < 1:
        raise ValueError("chunk_size must be positive")

    target = _RecordCollector(spec.record_tag, max_depth)
    parser = etree.XMLParser(
        target=target,
        encoding=encoding,
        huge_tree=True,
        resolve_entities=False,
        no_network=True,
        remove_comments=True,
        remove_pis=True,
    )

    fed = False
    async for chunk in _read_chunks(source, chunk_size):
        if not chunk:
            continue
        fed = True
        try:
            parser.feed(chunk)
        except etree.XMLSyntaxError as exc:
            raise _malformed(exc) from exc
        while target.ready:
            yield target.ready.popleft()

    if not fed:
        return

    target.closing = True
    try:
        parser.close()
    except etree.XMLSyntaxError as exc:
        if not target.seen_element:
            logger.warning(f"No elements found in {spec.member_name}")
        elif target.open_elements and exc.code != etree.ErrorTypes.ERR_TAG_NAME_MISMATCH:
            logger.warning(
                f"Stream {spec.member_name} ended inside <{target.open_path}>; "
                "dropping the unfinished record",
            )
        else:
            raise _malformed(exc) from exc

    while target.ready:
        yield target.ready.popleft()


async def parse_stream(
    source: ByteSource,
    spec: CategorySpec,
    handler: RecordHandler,
    **kwargs: Any,
) -> int:
    """Await ``handler`` once per record and return how many were handled."""

    count = 0
    async with aclosing(iter_records(source, spec, **kwargs)) as records:
        async for record in records:
            await handler(record)
            count += 1
    return count


__all__ = [
    "ByteSource",
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_MAX_DEPTH",
    "RecordHandler",
    "iter_records",
    "parse_stream",
]

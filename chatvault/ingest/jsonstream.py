"""
Token-level JSON reading on top of ijson.

Exports are read as a flat stream of (event, value) pairs so that only
one message object is materialized at a time, however large the file.
The helpers here let a parser walk the top-level structure by hand and
build or skip individual values.
"""

from typing import Any, BinaryIO, Iterator, Tuple

import ijson

Event = Tuple[str, Any]

_OPENERS = {"start_map", "start_array"}
_CLOSERS = {"end_map", "end_array"}

UTF8_BOM = b"\xef\xbb\xbf"


def skip_bom(stream: BinaryIO) -> None:
    """Move past a leading UTF-8 byte order mark; ijson rejects it."""
    position = stream.tell()
    if stream.read(len(UTF8_BOM)) != UTF8_BOM:
        stream.seek(position)


def events(stream: BinaryIO) -> Iterator[Event]:
    """Return an iterator of basic parse events for a binary stream."""
    return iter(ijson.basic_parse(stream, use_float=False))


def next_event(stream_events: Iterator[Event]) -> Event:
    """
    Pull the next event, treating a premature end of input as a JSON error.

    Raises:
        ijson.IncompleteJSONError: If the event stream is exhausted.
    """
    try:
        return next(stream_events)
    except StopIteration:
        raise ijson.IncompleteJSONError("Unexpected end of JSON input") from None


def expect(stream_events: Iterator[Event], expected: str) -> Any:
    """
    Pull the next event and check its type.

    Raises:
        ijson.JSONError: If the event is not the expected one.
    """
    event, value = next_event(stream_events)
    if event != expected:
        raise ijson.JSONError(f"Expected {expected}, got {event}")
    return value


def read_value(stream_events: Iterator[Event], event: str, value: Any) -> Any:
    """
    Build one complete JSON value starting at (event, value).

    Scalars are returned directly; maps and arrays are assembled with
    ijson.ObjectBuilder by consuming events up to the matching close.
    """
    if event not in _OPENERS:
        return value

    builder = ijson.ObjectBuilder()
    builder.event(event, value)
    depth = 1
    while depth:
        event, value = next_event(stream_events)
        builder.event(event, value)
        if event in _OPENERS:
            depth += 1
        elif event in _CLOSERS:
            depth -= 1
    return builder.value


def skip_value(stream_events: Iterator[Event], event: str) -> None:
    """Consume one JSON value starting at event without building it."""
    if event not in _OPENERS:
        return

    depth = 1
    while depth:
        event, _ = next_event(stream_events)
        if event in _OPENERS:
            depth += 1
        elif event in _CLOSERS:
            depth -= 1

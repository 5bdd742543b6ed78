"""
Archive import orchestration.

ArchiveDispatcher turns one uploaded export (a zip of many JSON files, or
a single JSON document) into contacts and messages in a store.

Pipeline Steps:
    1. Detect the container (declared type / file name, then magic bytes)
    2. For zips, walk entries in archive order and classify each by path
    3. Parse each relevant entry with its format's parser
    4. Persist every parsed chat: upsert_contact, then one insert_messages
    5. Report a final "Done" status with the number of parsed messages

Progress is an event stream: iter_import() is a generator and the import
only advances while the caller drains it. A failure inside one entry is
reported as an "error" event and the next entry is processed; only a
container-level failure ends the import early.

Re-running the same archive is safe: contacts are replaced and duplicate
messages are ignored by the store.
"""

import shutil
import tempfile
import zipfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, BinaryIO, Callable, Iterator, List, Optional, Sequence
import logging

from chatvault.ingest.errors import ContainerDetectionError, EntryParseError
from chatvault.ingest.identity import IdentityResolver
from chatvault.ingest.jsonstream import UTF8_BOM, skip_bom
from chatvault.ingest.models import ParsedChat
from chatvault.ingest.parsers import (
    ArchiveFormat,
    ChatParser,
    EntryPlan,
    ParseTick,
    build_parser,
    classify_entry,
    plan_single_document,
)

# chatvault.store imports chatvault.ingest, so only import it for typing
if TYPE_CHECKING:
    from chatvault.store import PersistenceGateway

logger = logging.getLogger(__name__)

ZIP = "zip"
JSON = "json"

ZIP_MAGIC = b"PK\x03\x04"
SNIFF_BYTES = 512

# Non-seekable inputs are spooled; beyond this they go to disk
SPOOL_MAX_BYTES = 16 * 1024 * 1024


@dataclass
class ProgressEvent:
    """
    One human-readable status update.

    stage is one of "reading", "entry", "progress", "error", "done".
    processed is the running total of parsed messages.
    """

    stage: str
    message: str
    processed: int = 0

    def __str__(self) -> str:
        return self.message


@dataclass
class ImportResult:
    """Result of an import run."""

    success: bool = False
    processed: int = 0
    inserted: int = 0
    entries_seen: int = 0
    entries_failed: int = 0
    chats_saved: int = 0
    container: Optional[str] = None
    error: Optional[str] = None
    duration_seconds: float = 0.0
    messages: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        status = "SUCCESS" if self.success else f"FAILED: {self.error}"
        return (
            f"Import {status} ({self.container or 'unknown'})\n"
            f"  Entries: {self.entries_seen} parsed, {self.entries_failed} failed\n"
            f"  Messages: {self.processed} processed, {self.inserted} new\n"
            f"  Chats: {self.chats_saved} saved\n"
            f"  Duration: {self.duration_seconds:.2f}s"
        )


def _ensure_seekable(stream: BinaryIO) -> BinaryIO:
    """Return a seekable stream with the same content, spooling if needed."""
    seekable = getattr(stream, "seekable", None)
    if seekable is not None and seekable():
        return stream

    spooled = tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_BYTES)
    shutil.copyfileobj(stream, spooled)
    spooled.seek(0)
    return spooled  # type: ignore[return-value]


def detect_container(stream: BinaryIO, content_type: str = "", filename: str = "") -> str:
    """
    Decide whether the input is a zip archive or a single JSON document.

    The declared content type and file name win; the first bytes are
    only inspected when neither says anything. The stream position is
    left unchanged.

    Returns:
        ZIP or JSON.

    Raises:
        ContainerDetectionError: If the input is neither.
    """
    content_type = (content_type or "").lower()
    name = (filename or "").lower()

    if "zip" in content_type or name.endswith(".zip"):
        return ZIP
    if "json" in content_type or name.endswith(".json"):
        return JSON

    position = stream.tell()
    head = stream.read(SNIFF_BYTES)
    stream.seek(position)

    if head.startswith(ZIP_MAGIC):
        return ZIP

    stripped = head[len(UTF8_BOM):] if head.startswith(UTF8_BOM) else head
    stripped = stripped.lstrip(b" \t\r\n")
    if stripped[:1] in (b"{", b"["):
        return JSON

    raise ContainerDetectionError(
        f"Unrecognized input {filename or '<stream>'!r} ({content_type or 'no content type'})"
    )


class ArchiveDispatcher:
    """
    Import chat exports into a store.

    The store is passed in explicitly; the dispatcher keeps no state
    between runs, but imports against the same store must not overlap.
    """

    def __init__(self, store: "PersistenceGateway"):
        self.store = store

    def iter_import(
        self,
        stream: BinaryIO,
        content_type: str = "",
        filename: str = "",
        aliases: Sequence[str] = (),
        platform: Optional[str] = None,
    ) -> Iterator[ProgressEvent]:
        """
        Import one export, yielding progress events as it goes.

        Args:
            stream: Readable binary stream with the export.
            content_type: Declared MIME type, if known.
            filename: File name or path hint, if known.
            aliases: The user's own usernames, in priority order.
            platform: Optional platform hint for standalone JSON files.

        Yields:
            ProgressEvent; the last one has stage "done" or "error".
        """
        return self._run(stream, content_type, filename, aliases, platform, ImportResult())

    def run_import(
        self,
        stream: BinaryIO,
        content_type: str = "",
        filename: str = "",
        aliases: Sequence[str] = (),
        platform: Optional[str] = None,
        on_progress: Optional[Callable[[ProgressEvent], None]] = None,
    ) -> ImportResult:
        """
        Import one export to completion.

        Every event is forwarded to on_progress (when given) before the
        import continues, and its text is kept in ImportResult.messages.

        Returns:
            ImportResult with counts and status.
        """
        result = ImportResult()
        for event in self._run(stream, content_type, filename, aliases, platform, result):
            result.messages.append(event.message)
            if on_progress is not None:
                on_progress(event)
        return result

    # =========================================================================
    # Internals
    # =========================================================================

    def _run(
        self,
        stream: BinaryIO,
        content_type: str,
        filename: str,
        aliases: Sequence[str],
        platform: Optional[str],
        result: ImportResult,
    ) -> Iterator[ProgressEvent]:
        start_time = datetime.now()
        identity = IdentityResolver(aliases)

        try:
            stream = _ensure_seekable(stream)
            result.container = detect_container(stream, content_type, filename)
            logger.info(f"Importing {filename or '<stream>'} as {result.container}")

            if result.container == ZIP:
                yield from self._import_zip(stream, identity, result)
            else:
                yield from self._import_document(stream, filename, platform, identity, result)

        except Exception as e:  # pylint: disable=broad-except
            result.duration_seconds = (datetime.now() - start_time).total_seconds()
            result.error = str(e)
            logger.exception("Import failed")
            yield ProgressEvent("error", f"Error: {e}", result.processed)
            return

        result.success = True
        result.duration_seconds = (datetime.now() - start_time).total_seconds()
        logger.info(
            f"Import finished in {result.duration_seconds:.2f}s: "
            f"{result.processed} messages, {result.entries_failed} failed entries"
        )
        yield ProgressEvent("done", f"Done! Processed {result.processed} messages.", result.processed)

    def _import_zip(
        self,
        stream: BinaryIO,
        identity: IdentityResolver,
        result: ImportResult,
    ) -> Iterator[ProgressEvent]:
        try:
            archive = zipfile.ZipFile(stream)
        except zipfile.BadZipFile as e:
            raise ContainerDetectionError(f"Not a valid zip archive: {e}") from e

        with archive:
            for info in archive.infolist():
                if info.is_dir():
                    continue

                plan = classify_entry(info.filename)
                if plan is None:
                    logger.debug(f"Skipping entry: {info.filename}")
                    continue

                result.entries_seen += 1
                yield self._entry_event(plan, result)

                try:
                    with archive.open(info) as entry_stream:
                        parser = build_parser(plan, identity, info.filename)
                        yield from self._consume(parser, entry_stream, result)
                except Exception as e:  # pylint: disable=broad-except
                    yield self._entry_failed(info.filename, e, result)

    def _import_document(
        self,
        stream: BinaryIO,
        filename: str,
        platform: Optional[str],
        identity: IdentityResolver,
        result: ImportResult,
    ) -> Iterator[ProgressEvent]:
        plan = plan_single_document(filename, platform)
        source_name = PurePosixPath(filename).name if filename else "<stream>"

        result.entries_seen += 1
        yield ProgressEvent("reading", "Reading JSON...", result.processed)

        try:
            parser = build_parser(plan, identity, source_name)
            yield from self._consume(parser, stream, result)
        except Exception as e:  # pylint: disable=broad-except
            yield self._entry_failed(source_name, e, result)

    def _consume(
        self,
        parser: ChatParser,
        stream: BinaryIO,
        result: ImportResult,
    ) -> Iterator[ProgressEvent]:
        """Run one parser over one entry, persisting each chat it yields."""
        entry_start = result.processed
        skip_bom(stream)

        for item in parser.parse(stream):
            if isinstance(item, ParseTick):
                yield ProgressEvent(
                    "progress",
                    f"Parsing Snapchat...\nImported: {entry_start + item.parsed}",
                    entry_start + item.parsed,
                )
                continue

            self._persist(item, result)

    def _persist(self, chat: ParsedChat, result: ImportResult) -> None:
        """Write one chat: the contact, then its whole batch, in one transaction."""
        with self.store.transaction():
            self.store.upsert_contact(chat.contact)
            inserted = self.store.insert_messages(chat.messages)

        result.processed += len(chat.messages)
        result.inserted += inserted
        result.chats_saved += 1
        logger.info(
            f"Saved {chat.contact.platforms} chat {chat.contact.id}: "
            f"{len(chat.messages)} parsed, {inserted} new"
        )

    @staticmethod
    def _entry_event(plan: EntryPlan, result: ImportResult) -> ProgressEvent:
        if plan.format is ArchiveFormat.INSTAGRAM:
            text = f"Sorting Archive...\nImported: {result.processed}\nCurrent: {plan.contact_id}"
        else:
            text = "Found Snapchat History..."
        return ProgressEvent("entry", text, result.processed)

    @staticmethod
    def _entry_failed(entry_name: str, error: Exception, result: ImportResult) -> ProgressEvent:
        result.entries_failed += 1
        logger.exception(f"Failed to parse {entry_name}")
        cause = error.cause if isinstance(error, EntryParseError) else error
        return ProgressEvent("error", f"Failed to parse {entry_name}: {cause}", result.processed)

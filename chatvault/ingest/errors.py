"""
Exceptions raised by the ingestion pipeline.

None of these escape ArchiveDispatcher.iter_import: they are turned into
"error" progress events. Field-level problems never raise; parsers fall
back to documented default values instead, and duplicate messages are
absorbed by the store's INSERT OR IGNORE.
"""


class ChatVaultError(Exception):
    """Base class for chatvault errors."""


class ContainerDetectionError(ChatVaultError):
    """The input could not be classified as a zip archive or a JSON document."""


class EntryParseError(ChatVaultError):
    """One archive entry could not be parsed; the import continues."""

    def __init__(self, entry_name: str, cause: BaseException):
        self.entry_name = entry_name
        self.cause = cause
        super().__init__(f"{entry_name}: {cause}")

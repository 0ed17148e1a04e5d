class CBUtilsError(Exception):
    """Base class for errors surfaced by the history engine."""


class ClipboardAccessError(CBUtilsError):
    """The OS clipboard could not be read or written right now."""


class StorageError(CBUtilsError):
    """A database statement or image file operation failed."""


class ImageDecodeError(CBUtilsError):
    """A stored image could not be decoded back into pixels."""


class EntryNotFoundError(CBUtilsError):
    def __init__(self, entry_id: int):
        super().__init__(f"No history entry with id {entry_id}")
        self.entry_id = entry_id

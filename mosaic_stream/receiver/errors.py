"""Exceptions raised inside the decoding engine.

They never cross ``MosaicDecoder.decode``: the dispatcher turns each of them
into a ``DecodeStatus``.
"""


class MosaicStreamError(Exception):
    """Base class for decoding errors."""


class InsufficientDataError(MosaicStreamError):
    """The window ends before the message does."""


class FramingError(MosaicStreamError):
    """The bytes at this position cannot be framed as a message."""


class SentenceParseError(MosaicStreamError):
    """An ASCII sentence could not be parsed into a record."""


class DependencyUnavailableError(MosaicStreamError):
    """A composite record needs cached inputs that have not arrived yet."""

    def __init__(self, kind: str, missing: tuple[str, ...]):
        self.kind = kind
        self.missing = missing
        super().__init__(f"{kind} needs {', '.join(missing)} which has not been received yet")


class BlockLayoutError(MosaicStreamError):
    """An SBF block does not match the layout of its record kind."""

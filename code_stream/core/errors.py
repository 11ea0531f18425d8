from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    MALFORMED = 'malformed'
    INVALID_FORMAT = 'invalid_format'
    MISMATCH = 'mismatch'
    NOT_FOUND = 'not_found'
    INCOMPLETE = 'incomplete'
    MISSING_CHUNK = 'missing_chunk'
    DECODE = 'decode'
    CHECKSUM = 'checksum'


@dataclass(frozen=True)
class StreamError:
    """Failure returned (never raised) by the parser and the assembler.

    Only the fields relevant to `kind` are set: `expected`/`actual` for a
    total mismatch, `progress` for an incomplete stream, `sequence` for a
    missing chunk or a checksum failure, `cause` for a decode failure.
    """
    kind: ErrorKind
    message: str
    stream_id: Optional[str] = None
    sequence: Optional[int] = None
    expected: Optional[int] = None
    actual: Optional[int] = None
    progress: Any = None
    cause: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return False

    def __str__(self):
        return self.message


def malformed(message: str, cause: Optional[BaseException] = None) -> StreamError:
    return StreamError(ErrorKind.MALFORMED, message, cause=cause)


def invalid_format(message: str) -> StreamError:
    return StreamError(ErrorKind.INVALID_FORMAT, f'Invalid chunk format: {message}')


class SymbolNotFound(Exception):
    """No symbol in the frame; the normal case between reads."""


class DecoderError(Exception):
    """Any other failure of the optical decoding layer."""

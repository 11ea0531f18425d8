import json
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union

from .errors import StreamError, malformed, invalid_format

# Candidate keys per field, in priority order. Different generators name
# the fields differently; the first key holding a non-null value wins.
STREAM_ID_KEYS = ('id', 'streamId', 'stream_id', 'streamID')
SEQUENCE_KEYS = ('seq', 'sequence', 'index', 'chunkIndex', 'chunk')
TOTAL_KEYS = ('total', 'totalChunks', 'total_chunks', 'chunkCount')
DATA_KEYS = ('data', 'payload', 'body', 'content')
CHECKSUM_KEYS = ('checksum', 'crc')

# Plain ASCII decimal or exponent notation; no underscores, no other digits.
_NUMERIC = re.compile(r'[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?')


@dataclass(frozen=True)
class Chunk:
    stream_id: str
    sequence: int
    total: int
    data: str
    checksum: Optional[str] = None

    @property
    def ok(self) -> bool:
        return True


def _first_defined(record: Dict[str, Any], keys: Tuple[str, ...]) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None


def _to_number(value: Any) -> float:
    """Coerce a JSON number or numeric string; NaN when not coercible."""
    if isinstance(value, bool) or value is None:
        return math.nan
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not _NUMERIC.fullmatch(text):
            return math.nan
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            return math.nan
    return math.nan


def _stringify_id(value: Any) -> str:
    # JSON spelling, so 1, 1.0 and "1" name the same stream
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _is_finite(number) -> bool:
    return isinstance(number, int) or math.isfinite(number)


def _is_integer(number) -> bool:
    return isinstance(number, int) or float(number).is_integer()


def parse_chunk(raw: Union[str, bytes]) -> Union[Chunk, StreamError]:
    """Parse one decoded symbol text into a Chunk.

    Pure function: returns a StreamError (MALFORMED or INVALID_FORMAT)
    instead of raising, and never partially succeeds.
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode('utf-8')
        except UnicodeDecodeError as e:
            return malformed(f'Failed to parse chunk: {e}', cause=e)
    try:
        record = json.loads(raw)
    except (TypeError, ValueError) as e:
        return malformed(f'Failed to parse chunk: {e}', cause=e)
    if not isinstance(record, dict):
        return malformed('Failed to parse chunk: not a JSON object')

    stream_id = _first_defined(record, STREAM_ID_KEYS)
    sequence = _to_number(_first_defined(record, SEQUENCE_KEYS))
    total = _to_number(_first_defined(record, TOTAL_KEYS))
    data = _first_defined(record, DATA_KEYS)
    checksum = _first_defined(record, CHECKSUM_KEYS)

    stream_id = _stringify_id(stream_id).strip() if stream_id is not None else ''
    if not stream_id:
        return invalid_format('missing stream id')
    if not _is_finite(sequence) or not _is_finite(total):
        return invalid_format('sequence and total must be numbers')
    if not isinstance(data, str) or not data:
        return invalid_format('data must be a non-empty string')
    if not _is_integer(sequence) or sequence < 0:
        return invalid_format(f'sequence {sequence!r} is not a non-negative integer')
    if not _is_integer(total) or total <= 0:
        return invalid_format(f'total {total!r} is not a positive integer')
    if sequence >= total:
        return invalid_format(f'sequence {int(sequence)} out of range for total {int(total)}')

    return Chunk(
        stream_id=stream_id,
        sequence=int(sequence),
        total=int(total),
        data=data,
        checksum=str(checksum) if checksum else None,
    )

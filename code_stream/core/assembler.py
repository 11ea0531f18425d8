import base64
import logging
import re
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set, Union

from .checksum import ChecksumVerifier
from .chunk_parser import parse_chunk
from .errors import ErrorKind, StreamError

logger = logging.getLogger(__name__)

# One base64 unit per padding-terminated run; independently encoded
# fragments carry their own '=' padding in the middle of the stream.
_PADDED_RUN = re.compile(r'[^=]*=*')

STATUS_PROGRESS = 'progress'
STATUS_COMPLETE = 'complete'
STATUS_DUPLICATE = 'duplicate'


@dataclass(frozen=True)
class Progress:
    received: int
    total: int
    percentage: int
    missing: List[int]

    @property
    def is_complete(self) -> bool:
        return self.received == self.total


@dataclass(frozen=True)
class ChunkResult:
    stream_id: str
    sequence: int
    status: str
    is_complete: bool
    progress: Progress

    @property
    def ok(self) -> bool:
        return True

    @property
    def is_duplicate(self) -> bool:
        return self.status == STATUS_DUPLICATE


@dataclass(frozen=True)
class Reconstruction:
    stream_id: str
    data: bytes
    size: int
    chunks: int
    duration: float  # seconds since the stream was first seen

    @property
    def ok(self) -> bool:
        return True

    def text(self, encoding: str = 'utf-8') -> str:
        return self.data.decode(encoding)


@dataclass(frozen=True)
class StreamSummary:
    stream_id: str
    progress: Progress


@dataclass
class _Stream:
    total: int
    started_at: float
    chunks: Dict[int, str] = field(default_factory=dict)
    received: Set[int] = field(default_factory=set)


def _percentage(received: int, total: int) -> int:
    # Integer round-half-up of received / total * 100.
    return (received * 200 + total) // (2 * total)


def decode_transport(encoded: str) -> bytes:
    """Decode a concatenation of base64 fragments into raw bytes."""
    out = bytearray()
    for run in _PADDED_RUN.findall(encoded):
        if run:
            out += base64.b64decode(run, validate=True)
    return bytes(out)


class StreamAssembler:
    """Reassembles chunked streams from decoded symbol texts.

    One instance per scanning session. Streams are created on their first
    chunk and live until clear_stream() or clear_all(); completed streams
    are kept so they can be reconstructed again.
    """

    def __init__(self, checksum_verifier: Optional[ChecksumVerifier] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.checksum_verifier = checksum_verifier
        self._clock = clock
        self._streams: Dict[str, _Stream] = {}
        self._lock = threading.RLock()

    def __len__(self):
        return len(self._streams)

    def __contains__(self, stream_id):
        return stream_id in self._streams

    def stream_ids(self) -> List[str]:
        with self._lock:
            return list(self._streams)

    def process_chunk(self, raw: Union[str, bytes]) -> Union[ChunkResult, StreamError]:
        chunk = parse_chunk(raw)
        if isinstance(chunk, StreamError):
            logger.debug('Rejected symbol: %s', chunk.message)
            return chunk

        stream_id, sequence, total = chunk.stream_id, chunk.sequence, chunk.total
        if (self.checksum_verifier is not None and chunk.checksum is not None
                and not self.checksum_verifier(chunk)):
            logger.warning('Checksum failed for stream %s chunk %d', stream_id, sequence)
            return StreamError(
                ErrorKind.CHECKSUM,
                f'Checksum mismatch for chunk {sequence}',
                stream_id=stream_id, sequence=sequence,
            )

        with self._lock:
            stream = self._streams.get(stream_id)
            if stream is None:
                stream = _Stream(total=total, started_at=self._clock())
                self._streams[stream_id] = stream
                logger.info('New stream %s with %d chunks', stream_id, total)

            if stream.total != total:
                logger.warning('Total mismatch for stream %s: expected %d, got %d',
                               stream_id, stream.total, total)
                return StreamError(
                    ErrorKind.MISMATCH,
                    f'Total mismatch: expected {stream.total}, got {total}',
                    stream_id=stream_id, sequence=sequence,
                    expected=stream.total, actual=total,
                )

            if sequence in stream.received:
                return ChunkResult(stream_id, sequence, STATUS_DUPLICATE,
                                   len(stream.received) == stream.total,
                                   self._progress(stream))

            stream.chunks[sequence] = chunk.data
            stream.received.add(sequence)
            is_complete = len(stream.received) == stream.total
            if is_complete:
                logger.info('Stream %s complete (%d chunks)', stream_id, stream.total)
            return ChunkResult(stream_id, sequence,
                               STATUS_COMPLETE if is_complete else STATUS_PROGRESS,
                               is_complete, self._progress(stream))

    def progress(self, stream_id: str) -> Optional[Progress]:
        with self._lock:
            stream = self._streams.get(stream_id)
            if stream is None:
                return None
            return self._progress(stream)

    def missing_chunks(self, stream_id: str) -> List[int]:
        with self._lock:
            stream = self._streams.get(stream_id)
            if stream is None:
                return []
            return self._missing(stream)

    def active_streams(self) -> List[StreamSummary]:
        with self._lock:
            return [StreamSummary(stream_id, self._progress(stream))
                    for stream_id, stream in self._streams.items()]

    def reconstruct(self, stream_id: str) -> Union[Reconstruction, StreamError]:
        with self._lock:
            stream = self._streams.get(stream_id)
            if stream is None:
                return StreamError(ErrorKind.NOT_FOUND, 'Stream not found',
                                   stream_id=stream_id)

            if len(stream.received) != stream.total:
                return StreamError(
                    ErrorKind.INCOMPLETE,
                    f'Incomplete stream: {len(stream.received)}/{stream.total} chunks received',
                    stream_id=stream_id, progress=self._progress(stream),
                )

            fragments = []
            for sequence in range(stream.total):
                fragment = stream.chunks.get(sequence)
                if not fragment:
                    return StreamError(ErrorKind.MISSING_CHUNK, f'Missing chunk {sequence}',
                                       stream_id=stream_id, sequence=sequence)
                fragments.append(fragment)
            started_at = stream.started_at

        try:
            data = decode_transport(''.join(fragments))
        except ValueError as e:
            logger.warning('Failed to decode stream %s: %s', stream_id, e)
            return StreamError(ErrorKind.DECODE, f'Failed to decode stream: {e}',
                               stream_id=stream_id, cause=e)

        return Reconstruction(
            stream_id=stream_id,
            data=data,
            size=len(data),
            chunks=len(fragments),
            duration=self._clock() - started_at,
        )

    def clear_stream(self, stream_id: str):
        with self._lock:
            self._streams.pop(stream_id, None)

    def clear_all(self):
        with self._lock:
            self._streams.clear()

    def _progress(self, stream: _Stream) -> Progress:
        received = len(stream.received)
        return Progress(
            received=received,
            total=stream.total,
            percentage=_percentage(received, stream.total),
            missing=self._missing(stream),
        )

    @staticmethod
    def _missing(stream: _Stream) -> List[int]:
        # O(total) per call; not cached.
        return [i for i in range(stream.total) if i not in stream.received]

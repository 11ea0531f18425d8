import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, List, Optional, Union

from .assembler import ChunkResult, StreamAssembler
from .errors import DecoderError, StreamError, SymbolNotFound

logger = logging.getLogger(__name__)

MAX_SAMPLE_COUNT = 6
FPS_SMOOTHING = 0.25

Outcome = Union[ChunkResult, StreamError]


@dataclass(frozen=True)
class FrameSample:
    text: str
    received_at: float  # wall clock, seconds


class ScanSession:
    """Couples one frame decoder to one assembler for a capture session.

    `decoder` takes a frame and returns the texts of the symbols in it,
    raising SymbolNotFound or DecoderError.
    It defaults to the pyzbar based decoder, imported on first use so the
    session can run with any decoder.
    """

    def __init__(self, assembler: Optional[StreamAssembler] = None,
                 decoder: Optional[Callable] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.assembler = assembler if assembler is not None else StreamAssembler()
        self._decoder = decoder
        self._clock = clock
        self.samples: Deque[FrameSample] = deque(maxlen=MAX_SAMPLE_COUNT)
        self.fps = 0.0
        self.last_error: Optional[Exception] = None
        self._fps_raw = 0.0
        self._last_stamp: Optional[float] = None

    @property
    def decoder(self) -> Callable:
        if self._decoder is None:
            from .decoding_qr import decode_frame
            self._decoder = decode_frame
        return self._decoder

    def process_frame(self, frame) -> List[Outcome]:
        self._tick()
        try:
            texts = self.decoder(frame)
        except SymbolNotFound:
            return []
        except DecoderError as e:
            self.last_error = e
            logger.warning('Decoder error: %s', e)
            return []
        return [self.process_text(text) for text in texts]

    def process_text(self, text: str) -> Outcome:
        self.samples.appendleft(FrameSample(text, time.time()))
        outcome = self.assembler.process_chunk(text)
        if isinstance(outcome, StreamError):
            logger.info('Chunk rejected (%s): %s', outcome.kind.value, outcome.message)
        return outcome

    def completed_streams(self) -> List[str]:
        return [s.stream_id for s in self.assembler.active_streams()
                if s.progress.is_complete]

    def clear_stream(self, stream_id: str):
        """Drop one stream, e.g. after a total mismatch; others keep their chunks."""
        self.assembler.clear_stream(stream_id)
        logger.info('Cleared stream %s', stream_id)

    def reset(self):
        self.assembler.clear_all()
        self.samples.clear()
        self.fps = 0.0
        self._fps_raw = 0.0
        self._last_stamp = None
        self.last_error = None

    def _tick(self):
        now = self._clock()
        if self._last_stamp is not None:
            delta = now - self._last_stamp
            instant = 1.0 / delta if delta > 0 else self._fps_raw
            self._fps_raw += (instant - self._fps_raw) * FPS_SMOOTHING
            self.fps = round(self._fps_raw, 1)
        self._last_stamp = now

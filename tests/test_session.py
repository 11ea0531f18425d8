"""Unit tests for the scan session driving an assembler from frames."""

import pytest

from code_stream.core.assembler import StreamAssembler
from code_stream.core.chunking import split_payload
from code_stream.core.errors import DecoderError, ErrorKind, StreamError, SymbolNotFound
from code_stream.core.session import MAX_SAMPLE_COUNT, ScanSession

from conftest import wire


class ScriptedDecoder:
    """Stands in for the optical decoder: each frame is what it returns or raises."""

    def __call__(self, frame):
        if isinstance(frame, Exception):
            raise frame
        return frame


@pytest.fixture
def session(clock):
    return ScanSession(StreamAssembler(clock=clock), decoder=ScriptedDecoder(), clock=clock)


class TestProcessFrame:

    def test_feeds_every_symbol(self, session):
        chunks = split_payload(b'two symbols', 8, stream_id='s')

        outcomes = session.process_frame(chunks)

        assert [o.sequence for o in outcomes] == list(range(len(chunks)))
        assert outcomes[-1].is_complete
        assert session.completed_streams() == ['s']
        assert session.assembler.reconstruct('s').data == b'two symbols'

    def test_no_symbol(self, session):
        assert session.process_frame(SymbolNotFound()) == []
        assert session.last_error is None

    def test_decoder_error_is_kept_and_scanning_continues(self, session):
        assert session.process_frame(DecoderError('camera glitch')) == []
        assert str(session.last_error) == 'camera glitch'

        outcomes = session.process_frame(split_payload('ok', 10, stream_id='s'))
        assert outcomes[0].is_complete

    def test_protocol_errors_returned(self, session):
        outcomes = session.process_frame(['not json'])

        assert isinstance(outcomes[0], StreamError)
        assert outcomes[0].kind == ErrorKind.MALFORMED
        assert session.last_error is None


class TestSamplesAndRate:

    def test_samples_newest_first_and_capped(self, session):
        for i in range(MAX_SAMPLE_COUNT + 3):
            session.process_text(f'text {i}')

        assert len(session.samples) == MAX_SAMPLE_COUNT
        assert session.samples[0].text == f'text {MAX_SAMPLE_COUNT + 2}'

    def test_fps_smoothing(self, session, clock):
        session.process_frame(SymbolNotFound())
        assert session.fps == 0.0

        clock.advance(0.5)
        session.process_frame(SymbolNotFound())
        assert session.fps == 0.5  # 0 + (2 - 0) * 0.25

        for _ in range(2):
            clock.advance(0.5)
            session.process_frame(SymbolNotFound())
        assert session.fps == 1.2  # 0.875, then 1.15625

    def test_reset(self, session):
        session.process_frame(split_payload('abc', 2, stream_id='s'))
        session.process_frame(DecoderError('x'))

        session.reset()

        assert len(session.assembler) == 0
        assert len(session.samples) == 0
        assert session.last_error is None
        assert session.fps == 0.0


class TestClearStream:

    def test_clear_stream_after_mismatch_keeps_other_streams(self, session):
        session.process_frame([wire('keep', 0, 2), wire('clash', 0, 3)])

        mismatch = session.process_text(wire('clash', 0, 1))
        assert mismatch.kind == ErrorKind.MISMATCH

        session.clear_stream('clash')

        assert session.assembler.stream_ids() == ['keep']
        assert session.assembler.progress('keep').received == 1
        assert session.process_text(wire('clash', 0, 1)).is_complete

"""Unit tests for stream assembly, progress and reconstruction."""

import base64
import itertools
import threading

import pytest

from code_stream.core.assembler import (StreamAssembler, ChunkResult, Reconstruction,
                                        decode_transport)
from code_stream.core.checksum import verify_crc32
from code_stream.core.chunking import split_payload
from code_stream.core.errors import ErrorKind, StreamError

from conftest import wire


class TestHelloWorldScenario:
    """'Hello, World!' in three chunks fed out of order."""

    def test_progress_and_reconstruction(self, assembler, hello_chunks):
        first = assembler.process_chunk(hello_chunks[1])
        assert first.status == 'progress'
        assert first.progress.received == 1

        second = assembler.process_chunk(hello_chunks[0])
        assert second.progress.received == 2
        assert second.progress.total == 3
        assert second.progress.missing == [2]
        assert second.progress.percentage == 67
        assert not second.is_complete

        last = assembler.process_chunk(hello_chunks[2])
        assert last.is_complete
        assert last.status == 'complete'
        assert last.progress.percentage == 100
        assert last.progress.missing == []

        result = assembler.reconstruct('hello')
        assert isinstance(result, Reconstruction)
        assert result.text() == 'Hello, World!'
        assert result.size == 13
        assert result.chunks == 3

    def test_duration_uses_first_seen_time(self, assembler, clock, hello_chunks):
        assembler.process_chunk(hello_chunks[0])
        clock.advance(2.5)
        for chunk in hello_chunks[1:]:
            assembler.process_chunk(chunk)
        clock.advance(0.5)

        assert assembler.reconstruct('hello').duration == pytest.approx(3.0)


class TestDuplicates:
    """Re-scanning a symbol never changes state."""

    def test_duplicate_is_idempotent(self, assembler):
        raw = wire('d', 0, 2, 'QUJD')

        first = assembler.process_chunk(raw)
        second = assembler.process_chunk(raw)

        assert first.progress.received == 1
        assert second.status == 'duplicate'
        assert second.is_duplicate
        assert second.progress.received == 1

    def test_duplicate_with_different_data_keeps_original(self, assembler):
        assembler.process_chunk(wire('d', 0, 3, base64.b64encode(b'abc').decode()))
        result = assembler.process_chunk(wire('d', 0, 3, base64.b64encode(b'xyz').decode()))

        assert result.status == 'duplicate'
        assert assembler.progress('d').received == 1

        assembler.process_chunk(wire('d', 1, 3, base64.b64encode(b'def').decode()))
        assembler.process_chunk(wire('d', 2, 3, base64.b64encode(b'ghi').decode()))
        assert assembler.reconstruct('d').data == b'abcdefghi'

    def test_duplicate_after_completion_reports_complete(self, assembler):
        assembler.process_chunk(wire('one', 0, 1))
        result = assembler.process_chunk(wire('one', 0, 1))

        assert result.is_duplicate
        assert result.is_complete

    def test_numeric_id_spellings_share_a_stream(self, assembler):
        assembler.process_chunk('{"id":1,"seq":0,"total":2,"data":"QQ=="}')
        result = assembler.process_chunk('{"id":1.0,"seq":1,"total":2,"data":"QQ=="}')

        assert len(assembler) == 1
        assert result.stream_id == '1'
        assert result.is_complete


class TestMismatch:
    """A conflicting total never alters the existing stream."""

    def test_total_mismatch_isolated(self, assembler):
        assembler.process_chunk(wire('m', 0, 3, 'QUJD'))
        before = assembler.progress('m')

        result = assembler.process_chunk(wire('m', 1, 4, 'REVG'))

        assert isinstance(result, StreamError)
        assert result.kind == ErrorKind.MISMATCH
        assert result.expected == 3
        assert result.actual == 4
        assert assembler.progress('m') == before

    def test_clear_recovers_from_collision(self, assembler):
        assembler.process_chunk(wire('m', 0, 3, 'QUJD'))
        assembler.clear_stream('m')

        result = assembler.process_chunk(wire('m', 0, 1, 'QUJD'))

        assert result.is_complete


class TestInvalidInput:
    """Rejected symbols leave every stream untouched."""

    def test_parse_errors_returned_unchanged(self, assembler):
        assembler.process_chunk(wire('keep', 0, 2, 'QUJD'))

        assert assembler.process_chunk('garbage').kind == ErrorKind.MALFORMED
        assert assembler.process_chunk('{"id":"","seq":0,"total":1,"data":"QQ=="}').kind == ErrorKind.INVALID_FORMAT
        assert assembler.process_chunk(wire('keep', 5, 2, 'QUJD')).kind == ErrorKind.INVALID_FORMAT
        assert assembler.stream_ids() == ['keep']
        assert assembler.progress('keep').received == 1


class TestProgress:

    def test_unknown_stream(self, assembler):
        assert assembler.progress('nope') is None
        assert assembler.missing_chunks('nope') == []

    def test_missing_is_ascending(self, assembler):
        for seq in (4, 0, 2):
            assembler.process_chunk(wire('p', seq, 6))

        assert assembler.missing_chunks('p') == [1, 3, 5]

    @pytest.mark.parametrize('received,total,expected', [
        (1, 8, 13),   # 12.5 rounds up
        (1, 3, 33),
        (2, 3, 67),
        (1, 200, 1),  # 0.5 rounds up
        (199, 200, 100),
    ])
    def test_percentage_rounding(self, assembler, received, total, expected):
        for seq in range(received):
            assembler.process_chunk(wire('r', seq, total))

        assert assembler.progress('r').percentage == expected

    def test_active_streams_in_first_seen_order(self, assembler):
        assembler.process_chunk(wire('b', 0, 2))
        assembler.process_chunk(wire('a', 0, 1))

        summaries = assembler.active_streams()

        assert [s.stream_id for s in summaries] == ['b', 'a']
        assert summaries[1].progress.is_complete
        assert len(assembler) == 2
        assert 'a' in assembler


class TestReconstruction:

    def test_unknown_stream(self, assembler):
        result = assembler.reconstruct('unknown-id')

        assert result.kind == ErrorKind.NOT_FOUND

    def test_incomplete_carries_progress(self, assembler):
        assembler.process_chunk(wire('i', 1, 3))

        result = assembler.reconstruct('i')

        assert result.kind == ErrorKind.INCOMPLETE
        assert result.progress.received == 1
        assert result.progress.missing == [0, 2]

    def test_completeness_gate(self, assembler):
        chunks = split_payload(b'0123456789' * 10, 16, stream_id='gate')
        for chunk in chunks[:-1]:
            assembler.process_chunk(chunk)
            assert assembler.reconstruct('gate').kind == ErrorKind.INCOMPLETE

        assembler.process_chunk(chunks[-1])
        assert assembler.reconstruct('gate').data == b'0123456789' * 10

    def test_decode_error(self, assembler):
        assembler.process_chunk(wire('bad', 0, 2, 'QUJD'))
        assembler.process_chunk(wire('bad', 1, 2, '!!not base64!!'))

        result = assembler.reconstruct('bad')

        assert result.kind == ErrorKind.DECODE
        assert isinstance(result.cause, ValueError)

    def test_repeatable_and_non_destructive(self, assembler, hello_chunks):
        for chunk in hello_chunks:
            assembler.process_chunk(chunk)

        first = assembler.reconstruct('hello')
        second = assembler.reconstruct('hello')

        assert first.data == second.data
        assert assembler.progress('hello').received == 3

    @pytest.mark.parametrize('size', [1, 2, 3, 4, 7, 64])
    def test_round_trip(self, assembler, size):
        payload = 'Grüße, 世界! ' * 9

        for chunk in split_payload(payload, size, stream_id='rt'):
            assembler.process_chunk(chunk)

        assert assembler.reconstruct('rt').text() == payload

    def test_order_independence(self):
        payload = bytes(range(256))
        chunks = split_payload(payload, 100, stream_id='perm')

        for order in itertools.permutations(chunks):
            assembler = StreamAssembler()
            for chunk in order:
                assembler.process_chunk(chunk)
            result = assembler.reconstruct('perm')
            assert result.data == payload
            assert result.size == 256

    def test_interleaved_streams(self, assembler):
        left = split_payload(b'left payload', 4, stream_id='left')
        right = split_payload(b'right payload', 4, stream_id='right')

        for a, b in itertools.zip_longest(left, right):
            for chunk in (a, b):
                if chunk:
                    assembler.process_chunk(chunk)

        assert assembler.reconstruct('left').data == b'left payload'
        assert assembler.reconstruct('right').data == b'right payload'


class TestDecodeTransport:

    def test_single_encoded_string(self):
        assert decode_transport('SGVsbG8sIFdvcmxkIQ==') == b'Hello, World!'

    def test_independently_padded_fragments(self):
        assert decode_transport('SGVsbG8=LCBXb3I=bGQh') == b'Hello, World!'

    def test_empty(self):
        assert decode_transport('') == b''

    @pytest.mark.parametrize('encoded', ['SGVsbG8', 'QQ===', 'QQ==\n'])
    def test_invalid(self, encoded):
        with pytest.raises(ValueError):
            decode_transport(encoded)


class TestChecksumVerification:
    """Checksums are only enforced when a verifier is configured."""

    def test_ignored_without_verifier(self, assembler):
        result = assembler.process_chunk(wire('c', 0, 1, 'QUJD', checksum='deadbeef'))

        assert isinstance(result, ChunkResult)

    def test_rejected_with_verifier(self):
        assembler = StreamAssembler(checksum_verifier=verify_crc32)

        result = assembler.process_chunk(wire('c', 0, 1, 'QUJD', checksum='deadbeef'))

        assert result.kind == ErrorKind.CHECKSUM
        assert result.sequence == 0
        assert 'c' not in assembler

    def test_accepted_with_verifier(self):
        assembler = StreamAssembler(checksum_verifier=verify_crc32)

        for chunk in split_payload(b'checked payload', 8, stream_id='c', with_checksum=True):
            assert assembler.process_chunk(chunk).ok

        assert assembler.reconstruct('c').data == b'checked payload'

    def test_missing_checksum_accepted_with_verifier(self):
        assembler = StreamAssembler(checksum_verifier=verify_crc32)

        assert assembler.process_chunk(wire('c', 0, 1, 'QUJD')).ok


class TestClear:

    def test_clear_stream(self, assembler):
        assembler.process_chunk(wire('x', 0, 1))
        assembler.process_chunk(wire('y', 0, 1))

        assembler.clear_stream('x')
        assembler.clear_stream('never-seen')

        assert assembler.stream_ids() == ['y']
        assert assembler.reconstruct('x').kind == ErrorKind.NOT_FOUND

    def test_clear_all(self, assembler):
        assembler.process_chunk(wire('x', 0, 1))
        assembler.process_chunk(wire('y', 0, 1))

        assembler.clear_all()

        assert len(assembler) == 0
        assert assembler.active_streams() == []


class TestConcurrentIngest:

    def test_threads_sharing_one_assembler(self):
        payload = bytes(range(256)) * 20
        chunks = split_payload(payload, 50, stream_id='mt')
        assembler = StreamAssembler()

        def feed(offset):
            for chunk in chunks[offset::2] + chunks:
                assembler.process_chunk(chunk)

        threads = [threading.Thread(target=feed, args=(i,)) for i in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert assembler.progress('mt').received == len(chunks)
        assert assembler.reconstruct('mt').data == payload

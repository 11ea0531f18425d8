"""Shared pytest fixtures for all tests."""

import base64
import json

import pytest

from code_stream.core.assembler import StreamAssembler


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start=100.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def wire(stream_id='s1', seq=0, total=1, data='QQ==', **extra):
    record = {'id': stream_id, 'seq': seq, 'total': total, 'data': data, 'checksum': None}
    record.update(extra)
    return json.dumps(record)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def assembler(clock):
    return StreamAssembler(clock=clock)


@pytest.fixture
def hello_chunks():
    """'Hello, World!' cut into 5 character pieces, each base64 encoded."""
    pieces = ['Hello', ', Wor', 'ld!']
    return [
        wire('hello', seq, len(pieces), base64.b64encode(p.encode()).decode())
        for seq, p in enumerate(pieces)
    ]

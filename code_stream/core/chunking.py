import base64
import json
import random
import string
import time
from datetime import datetime, timezone
from typing import Iterator, List, Optional, Tuple, Union

from .checksum import crc32_hex

DEFAULT_CHUNK_SIZE = 2000  # encoded characters per symbol

_ID_ALPHABET = string.digits + string.ascii_lowercase

SAMPLE_TEXT = ('Lorem ipsum dolor sit amet, consectetur adipiscing elit. \n'
               'Sed do eiusmod tempor incididunt ut labore et dolore magna aliqua. \n'
               'Ut enim ad minim veniam, quis nostrud exercitation ullamco laboris. ')


def _as_bytes(payload: Union[str, bytes]) -> bytes:
    if isinstance(payload, str):
        return payload.encode('utf-8')
    return bytes(payload)


def new_stream_id() -> str:
    suffix = ''.join(random.choices(_ID_ALPHABET, k=9))
    return f'stream_{int(time.time() * 1000)}_{suffix}'


def encode_fragment(fragment: Union[str, bytes]) -> str:
    return base64.b64encode(_as_bytes(fragment)).decode('ascii')


def make_chunk(stream_id: str, sequence: int, total: int, encoded: str,
               checksum: Optional[str] = None) -> str:
    """Serialize one already-encoded fragment as a wire chunk."""
    return json.dumps({
        'id': stream_id,
        'seq': sequence,
        'total': total,
        'data': encoded,
        'checksum': checksum,
    }, separators=(',', ':'))


def create_chunk(stream_id: str, sequence: int, total: int,
                 fragment: Union[str, bytes], checksum: Optional[str] = None) -> str:
    """Wire chunk for a raw fragment; the fragment is base64 encoded on its own."""
    return make_chunk(stream_id, sequence, total, encode_fragment(fragment), checksum)


def iter_encoded_fragments(encoded: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[Tuple[int, str]]:
    """Yield (sequence, fragment) slices of at most chunk_size characters."""
    if chunk_size < 1:
        raise ValueError('chunk_size must be at least 1')
    for idx, start in enumerate(range(0, len(encoded), chunk_size)):
        yield idx, encoded[start:start + chunk_size]


def split_payload(payload: Union[str, bytes], max_chunk_size: int = DEFAULT_CHUNK_SIZE,
                  stream_id: Optional[str] = None, with_checksum: bool = False) -> List[str]:
    """Encode the whole payload once, then cut the base64 text into wire chunks."""
    encoded = encode_fragment(payload)
    fragments = list(iter_encoded_fragments(encoded, max_chunk_size))
    stream_id = stream_id or new_stream_id()
    total = len(fragments)
    return [
        make_chunk(stream_id, seq, total, fragment,
                   crc32_hex(fragment) if with_checksum else None)
        for seq, fragment in fragments
    ]


def read_payload(path: str) -> bytes:
    with open(path, 'rb') as f:
        return f.read()


def generate_test_payload(size: int = 5000) -> str:
    """Text payload of exactly `size` characters for demos."""
    parts = [
        'Test Data Stream\n',
        f"Generated: {datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')}\n",
        f'Size: {size} characters\n',
        '\n',
    ]
    length = sum(len(p) for p in parts)
    while length < size:
        parts.append(SAMPLE_TEXT)
        length += len(SAMPLE_TEXT)
    return ''.join(parts)[:size]

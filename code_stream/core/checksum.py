import zlib
from typing import Callable, Union

from .chunk_parser import Chunk

# Signature of the optional per-chunk verifier accepted by StreamAssembler.
ChecksumVerifier = Callable[[Chunk], bool]


def crc32_hex(data: Union[str, bytes]) -> str:
    if isinstance(data, str):
        data = data.encode('utf-8')
    return format(zlib.crc32(data) & 0xFFFFFFFF, '08x')


def verify_crc32(chunk: Chunk) -> bool:
    """True when the chunk's checksum is the CRC32 of its encoded data."""
    if chunk.checksum is None:
        return True
    expected = chunk.checksum.strip().lower()
    if expected.startswith('0x'):
        expected = expected[2:]
    return expected.rjust(8, '0') == crc32_hex(chunk.data)

import struct
import zlib

import pytest

import gzip_envelope

NUL = b'\x00'

SAMPLE_DATA = b'The quick brown fox jumps over the lazy dog.\n' * 40
SAMPLE_MTIME = 0x599e86e7
SAMPLE_NAME = b'sample.txt'


def build_gzip(
    data: bytes = b'',
    level: int = 6,
    compression_method: int = 8,
    flag_bits: int = 0,
    mtime: int = 0,
    extra_flags: int | None = None,
    operating_system: int = 3,
    extra_field: bytes | None = None,
    file_name: bytes | None = None,
    comment: bytes | None = None,
    header_crc: bool = False,
) -> bytes:
    """Assemble a single member gzip stream, byte by byte.

    ``extra_field`` is the raw XLEN + sub-records region. ``flag_bits`` is
    OR'd into the flags so reserved bits can be set.
    """
    flags = flag_bits
    if extra_field is not None:
        flags |= gzip_envelope.FlagBit.EXTRA_FIELDS
    if file_name is not None:
        assert NUL not in file_name
        flags |= gzip_envelope.FlagBit.FILE_NAME
    if comment is not None:
        assert NUL not in comment
        flags |= gzip_envelope.FlagBit.COMMENT
    if header_crc:
        flags |= gzip_envelope.FlagBit.HEADER_CRC

    if extra_flags is None:
        match level:
            case 1: extra_flags = 4
            case 9: extra_flags = 2
            case _: extra_flags = 0

    header = bytearray(struct.pack('<2sBBLBB', b'\x1f\x8b', compression_method,
                                   flags, mtime, extra_flags, operating_system))
    if extra_field is not None:
        header += extra_field
    if file_name is not None:
        header += file_name + NUL
    if comment is not None:
        header += comment + NUL
    if header_crc:
        header += struct.pack('<H', zlib.crc32(header) & 0x0000ffff)

    wbits = -15  # 15 -> Maximum window size; -ive -> raw deflate stream
    compressor = zlib.compressobj(level, zlib.DEFLATED, wbits)
    payload = compressor.compress(data) + compressor.flush()
    footer = struct.pack('<LL', zlib.crc32(data), len(data) % 2**32)
    return bytes(header) + payload + footer


def build_extra_field(*sub_fields: tuple[bytes, bytes], xlen: int | None = None) -> bytes:
    """XLEN followed by (id, data) sub-records, XLEN may be overridden"""
    body = b''.join(
        struct.pack('<2sH', sf_id, len(data)) + data for sf_id, data in sub_fields
    )
    if xlen is None:
        xlen = len(body)
    return struct.pack('<H', xlen) + body


@pytest.fixture
def make_gzip():
    return build_gzip


@pytest.fixture
def make_extra_field():
    return build_extra_field


@pytest.fixture
def sample_gzip():
    """Deflate, FNAME only, Unix, maximum compression"""
    return build_gzip(
        SAMPLE_DATA,
        level=9,
        mtime=SAMPLE_MTIME,
        operating_system=3,
        file_name=SAMPLE_NAME,
    )

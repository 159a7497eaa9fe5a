#!/usr/bin/env python3
'''
Gzip envelope decoder, reads the metadata around a compressed member

Decodes the header (fixed fields, flag gated optional fields, extra field
sub-records) and the footer (CRC32, uncompressed size) of a single member
gzip stream, as documented in RFC 1952. The compressed payload between them
is returned as an uninterpreted span; nothing is decompressed and no
checksum is verified.

$ printf 'hello' | /usr/bin/gzip -9 > hello.gz
$ ./gzip_envelope.py hello.gz
{
  "footer": {
    "crc32": 907060870,
    "input_size": 5
  },
  "header": {
    "compression_method": "DEFLATED",
    ...

Only one member per stream is supported. gzip and 7z both mishandle
concatenated members in practice (header of the first, size of the last),
so the member is assumed to run until the final 8 bytes of the input.
'''

import dataclasses
import datetime
import enum
import logging
import struct

logger = logging.getLogger(__name__)

MAGIC = b'\x1f\x8b'
NUL = b'\x00'
FIXED_HEADER_SIZE = 10
FOOTER_SIZE = 8

_U16LE = struct.Struct('<H')
_U32LE = struct.Struct('<L')
_FOOTER = struct.Struct('<LL')


class GzipError(ValueError):
    """A gzip stream could not be decoded.

    ``field`` names the step that failed, ``offset`` is the absolute
    position in the input where that step started.
    """

    def __init__(self, message: str, field: str | None = None, offset: int | None = None):
        super().__init__(message)
        self.field = field
        self.offset = offset


class MagicMismatch(GzipError):
    pass


class InsufficientData(GzipError):
    pass


class InvalidEncoding(GzipError):
    pass


class UnterminatedString(GzipError):
    pass


class MalformedExtraField(GzipError):
    pass


class FooterNotAtEnd(GzipError):
    pass


class TruncatedFile(GzipError):
    pass


class _ByteCodeMixin:
    """Total mapping from a single byte, anything unlisted becomes UNKNOWN"""

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, int) and 0 <= value <= 0xff:
            return cls.UNKNOWN
        return None

    @classmethod
    def from_byte(cls, byte: int):
        return cls(byte)


class CompressionMethod(_ByteCodeMixin, enum.IntEnum):
    RESERVED0 = 0
    RESERVED1 = 1
    RESERVED2 = 2
    RESERVED3 = 3
    RESERVED4 = 4
    RESERVED5 = 5
    RESERVED6 = 6
    RESERVED7 = 7
    DEFLATED = 8
    # Not a wire value, stands for 9-255
    UNKNOWN = -1


class FlagBit(enum.IntFlag):
    TEXT = enum.auto()
    HEADER_CRC = enum.auto()
    EXTRA_FIELDS = enum.auto()
    FILE_NAME = enum.auto()
    COMMENT = enum.auto()


RESERVED_FLAG_BITS = 0xe0


@dataclasses.dataclass(frozen=True, slots=True)
class Flags:
    ftext: bool = False
    fhcrc: bool = False
    fextra: bool = False
    fname: bool = False
    fcomment: bool = False

    @classmethod
    def from_byte(cls, byte: int) -> 'Flags':
        # Bits 5-7 are reserved and ignored
        return cls(
            ftext=bool(byte & FlagBit.TEXT),
            fhcrc=bool(byte & FlagBit.HEADER_CRC),
            fextra=bool(byte & FlagBit.EXTRA_FIELDS),
            fname=bool(byte & FlagBit.FILE_NAME),
            fcomment=bool(byte & FlagBit.COMMENT),
        )


class ExtraFlags(_ByteCodeMixin, enum.IntEnum):
    # 0 is "no extra flags", which is as uninformative as any other value
    UNKNOWN = 0
    MAXIMUM_COMPRESSION = 2
    FASTEST_ALGORITHM = 4


class OperatingSystem(_ByteCodeMixin, enum.IntEnum):
    FAT = 0
    AMIGA = 1
    VMS = 2
    UNIX = 3
    VM_CMS = 4
    ATARI_TOS = 5
    HPFS = 6
    MACINTOSH = 7
    Z_SYSTEM = 8
    CP_M = 9
    TOPS_20 = 10
    NTFS = 11
    QDOS = 12
    RISCOS = 13
    # The format's own "unknown" code, unassigned codes 14-254 land here too
    UNKNOWN = 255


@dataclasses.dataclass(frozen=True, slots=True)
class SubField:
    """One vendor sub-record of the extra field.

    ``data`` is a view into the decoded buffer, not a copy.
    """
    id1: int
    id2: int
    data: memoryview = dataclasses.field(hash=False)

    @property
    def id(self) -> bytes:
        return bytes((self.id1, self.id2))


@dataclasses.dataclass(frozen=True, slots=True)
class ExtraField:
    sub_fields: tuple[SubField, ...] = ()

    def __iter__(self):
        return iter(self.sub_fields)

    def __len__(self):
        return len(self.sub_fields)

    def find(self, id1: int, id2: int) -> SubField | None:
        for sub_field in self.sub_fields:
            if (sub_field.id1, sub_field.id2) == (id1, id2):
                return sub_field
        return None


@dataclasses.dataclass(frozen=True, slots=True)
class GzipHeader:
    compression_method: CompressionMethod
    flags: Flags
    modification_time: int
    extra_flags: ExtraFlags
    operating_system: OperatingSystem
    extra_field: ExtraField | None = None
    original_filename: str | None = None
    file_comment: str | None = None
    header_crc: int | None = None
    size: int = FIXED_HEADER_SIZE
    # (tag, start, end) byte ranges, end exclusive
    regions: tuple[tuple[str, int, int], ...] = dataclasses.field(
        default=(), repr=False, compare=False,
    )

    @property
    def modified(self) -> datetime.datetime | None:
        if not self.modification_time:
            return None
        return datetime.datetime.fromtimestamp(
            self.modification_time, tz=datetime.timezone.utc,
        )

    def to_dict(self) -> dict:
        extra_field = None
        if self.extra_field is not None:
            extra_field = [
                {'id': sf.id.hex(), 'data': sf.data.hex()}
                for sf in self.extra_field
            ]
        modified = self.modified
        return {
            'compression_method': self.compression_method.name,
            'flags': dataclasses.asdict(self.flags),
            'modification_time': self.modification_time,
            'modified': modified.isoformat() if modified else None,
            'extra_flags': self.extra_flags.name,
            'operating_system': self.operating_system.name,
            'extra_field': extra_field,
            'original_filename': self.original_filename,
            'file_comment': self.file_comment,
            'header_crc': self.header_crc,
            'size': self.size,
        }


@dataclasses.dataclass(frozen=True, slots=True)
class GzipFooter:
    crc32: int
    input_size: int

    def to_dict(self) -> dict:
        return {'crc32': self.crc32, 'input_size': self.input_size}


@dataclasses.dataclass(frozen=True, slots=True)
class GzipFile:
    """A decoded member. ``payload`` is a view into the decoded buffer."""
    header: GzipHeader
    payload: memoryview = dataclasses.field(hash=False)
    footer: GzipFooter

    def to_dict(self) -> dict:
        return {
            'header': self.header.to_dict(),
            'payload_size': len(self.payload),
            'footer': self.footer.to_dict(),
        }


def _as_buffer(data):
    if isinstance(data, (bytes, bytearray)):
        return data
    return bytes(data)


def _need(buf, offset: int, count: int, field: str):
    available = len(buf) - offset
    if available < count:
        raise InsufficientData(
            f'{field}: need {count} bytes at offset {offset}, {available} remaining',
            field, offset,
        )


def read_tag(buf, offset: int, expected: bytes, field: str = 'magic') -> tuple[bytes, int]:
    _need(buf, offset, len(expected), field)
    end = offset + len(expected)
    found = bytes(buf[offset:end])
    if found != expected:
        raise MagicMismatch(
            f'{field}: expected {expected.hex()}, found {found.hex()}',
            field, offset,
        )
    return found, end


def read_u8(buf, offset: int, field: str = 'byte') -> tuple[int, int]:
    _need(buf, offset, 1, field)
    return buf[offset], offset + 1


def read_u16le(buf, offset: int, field: str = 'u16') -> tuple[int, int]:
    _need(buf, offset, _U16LE.size, field)
    value, = _U16LE.unpack_from(buf, offset)
    return value, offset + _U16LE.size


def read_u32le(buf, offset: int, field: str = 'u32') -> tuple[int, int]:
    _need(buf, offset, _U32LE.size, field)
    value, = _U32LE.unpack_from(buf, offset)
    return value, offset + _U32LE.size


def read_length_prefixed(buf, offset: int, field: str = 'data') -> tuple[memoryview, int]:
    length, start = read_u16le(buf, offset, field)
    _need(buf, start, length, field)
    end = start + length
    return memoryview(buf)[start:end], end


def read_null_terminated(buf, offset: int, field: str = 'string',
                         encoding: str = 'utf-8') -> tuple[str, int]:
    buf = _as_buffer(buf)
    end = buf.find(NUL, offset)
    if end < 0:
        raise UnterminatedString(
            f'{field}: no NUL terminator after offset {offset}', field, offset,
        )
    try:
        value = bytes(buf[offset:end]).decode(encoding)
    except UnicodeDecodeError as exc:
        raise InvalidEncoding(f'{field}: not valid {encoding}: {exc}', field, offset) from exc
    return value, end + 1


def _read_sub_field(buf, offset: int) -> tuple[SubField, int]:
    id1, offset = read_u8(buf, offset, 'sub_field.id1')
    id2, offset = read_u8(buf, offset, 'sub_field.id2')
    data, offset = read_length_prefixed(buf, offset, 'sub_field.data')
    return SubField(id1, id2, data), offset


def decode_extra_field(buf, offset: int = 0) -> tuple[ExtraField, int]:
    """Decode XLEN and the sub-records it spans.

    The sub-records must fill XLEN exactly, a sub-record crossing the
    boundary is an error rather than being truncated.
    """
    buf = _as_buffer(buf)
    xlen, start = read_u16le(buf, offset, 'extra_field.xlen')
    _need(buf, start, xlen, 'extra_field')
    end = start + xlen
    # Sub-records are decoded from a window ending at XLEN so that nothing
    # past the aggregate can be consumed
    window = memoryview(buf)[:end]
    sub_fields = []
    pos = start
    while pos < end:
        try:
            sub_field, pos = _read_sub_field(window, pos)
        except InsufficientData as exc:
            raise MalformedExtraField(
                f'extra_field: sub-field at offset {exc.offset} overruns '
                f'XLEN={xlen} ending at offset {end}',
                'extra_field', offset,
            ) from exc
        sub_fields.append(sub_field)
    return ExtraField(tuple(sub_fields)), end


def _decode_header(buf, offset: int = 0, encoding: str = 'utf-8') -> tuple[GzipHeader, int]:
    start = offset
    regions = []

    _, offset = read_tag(buf, offset, MAGIC, 'magic')
    method, offset = read_u8(buf, offset, 'compression_method')
    flag_byte, offset = read_u8(buf, offset, 'flags')
    mtime, offset = read_u32le(buf, offset, 'mtime')
    xfl, offset = read_u8(buf, offset, 'extra_flags')
    os_byte, offset = read_u8(buf, offset, 'operating_system')

    flags = Flags.from_byte(flag_byte)
    if flag_byte & RESERVED_FLAG_BITS:
        logger.debug('ignoring reserved flag bits 0x%02x', flag_byte & RESERVED_FLAG_BITS)

    extra_field = original_filename = file_comment = header_crc = None
    if flags.fextra:
        field_start = offset
        extra_field, offset = decode_extra_field(buf, offset)
        regions.append(('XF', field_start, offset))
        logger.debug('extra field: %d sub-field(s)', len(extra_field))
    if flags.fname:
        field_start = offset
        original_filename, offset = read_null_terminated(
            buf, offset, 'original_filename', encoding,
        )
        regions.append(('FN', field_start, offset))
        logger.debug('original filename: %r', original_filename)
    if flags.fcomment:
        field_start = offset
        file_comment, offset = read_null_terminated(
            buf, offset, 'file_comment', encoding,
        )
        regions.append(('FC', field_start, offset))
    if flags.fhcrc:
        field_start = offset
        header_crc, offset = read_u16le(buf, offset, 'header_crc')
        regions.append(('HC', field_start, offset))

    regions.insert(0, ('HD', start, offset))
    header = GzipHeader(
        compression_method=CompressionMethod.from_byte(method),
        flags=flags,
        modification_time=mtime,
        extra_flags=ExtraFlags.from_byte(xfl),
        operating_system=OperatingSystem.from_byte(os_byte),
        extra_field=extra_field,
        original_filename=original_filename,
        file_comment=file_comment,
        header_crc=header_crc,
        size=offset - start,
        regions=tuple(regions),
    )
    return header, offset


def decode_header(data, encoding: str = 'utf-8') -> tuple[GzipHeader, memoryview]:
    """Decode the header at the start of ``data``.

    Returns the header and a view of the bytes following it (compressed
    payload and footer). Views returned here and inside the header keep
    ``data`` alive; if ``data`` is a bytearray it cannot be resized while
    they exist, and changes to it show through them.
    """
    buf = _as_buffer(data)
    header, offset = _decode_header(buf, 0, encoding)
    return header, memoryview(buf)[offset:]


def _footer_at(buf, offset: int) -> GzipFooter:
    _need(buf, offset, FOOTER_SIZE, 'footer')
    crc32, input_size = _FOOTER.unpack_from(buf, offset)
    trailing = len(buf) - offset - FOOTER_SIZE
    if trailing:
        raise FooterNotAtEnd(
            f'footer: {trailing} byte(s) follow the footer at offset {offset}',
            'footer', offset,
        )
    return GzipFooter(crc32, input_size)


def decode_footer(data) -> GzipFooter:
    """Decode an 8 byte footer, nothing may follow it"""
    return _footer_at(_as_buffer(data), 0)


def decode_file(data, encoding: str = 'utf-8') -> GzipFile:
    """Decode a whole single member stream.

    The footer is the final 8 bytes and the payload is everything between
    the header and the footer.
    """
    buf = _as_buffer(data)
    header, offset = _decode_header(buf, 0, encoding)
    footer_offset = len(buf) - FOOTER_SIZE
    if footer_offset < offset:
        raise TruncatedFile(
            f'footer: {len(buf) - offset} byte(s) after the header, '
            f'need at least {FOOTER_SIZE}',
            'footer', offset,
        )
    logger.debug('payload: offset %d, %d byte(s)', offset, footer_offset - offset)
    return GzipFile(
        header=header,
        payload=memoryview(buf)[offset:footer_offset],
        footer=_footer_at(buf, footer_offset),
    )


def main(argv=None):
    import argparse
    import json
    import sys

    p = argparse.ArgumentParser(description=str(__doc__).strip().split('\n')[0])
    p.add_argument('path', nargs='?', help='gzip file, stdin when omitted')
    p.add_argument('--encoding', default='utf-8',
                   help='Encoding of the filename and comment (RFC 1952 says iso8859-1)')
    p.add_argument('--header-only', action='store_true',
                   help='Stop after the header, report how many bytes follow it')
    p.add_argument('-v', '--verbose', action='store_true')
    args = p.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    if args.path is None:
        data = sys.stdin.buffer.read()
    else:
        with open(args.path, 'rb') as f:
            data = f.read()

    try:
        if args.header_only:
            header, rest = decode_header(data, args.encoding)
            info = {'header': header.to_dict(), 'remaining': len(rest)}
        else:
            info = decode_file(data, args.encoding).to_dict()
    except GzipError as exc:
        sys.exit(f'{args.path or "<stdin>"}: {exc}')

    json.dump(info, sys.stdout, indent=2, sort_keys=True)
    sys.stdout.write('\n')


if __name__ == '__main__':
    main()

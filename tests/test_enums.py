import pytest

from gzip_envelope import (
    CompressionMethod,
    ExtraFlags,
    FlagBit,
    Flags,
    OperatingSystem,
)


def test_compression_method():
    expected = [
        CompressionMethod.RESERVED0,
        CompressionMethod.RESERVED1,
        CompressionMethod.RESERVED2,
        CompressionMethod.RESERVED3,
        CompressionMethod.RESERVED4,
        CompressionMethod.RESERVED5,
        CompressionMethod.RESERVED6,
        CompressionMethod.RESERVED7,
        CompressionMethod.DEFLATED,
    ]
    for byte, method in enumerate(expected):
        assert CompressionMethod.from_byte(byte) is method
    for byte in range(9, 256):
        assert CompressionMethod.from_byte(byte) is CompressionMethod.UNKNOWN


def test_out_of_range_is_not_a_byte_code():
    with pytest.raises(ValueError):
        CompressionMethod(256)
    with pytest.raises(ValueError):
        OperatingSystem('UNIX')


def test_flags():
    for byte in range(0b0010_0000):
        assert Flags.from_byte(byte) == Flags(
            ftext=byte & 0b0000_0001 > 0,
            fhcrc=byte & 0b0000_0010 > 0,
            fextra=byte & 0b0000_0100 > 0,
            fname=byte & 0b0000_1000 > 0,
            fcomment=byte & 0b0001_0000 > 0,
        )


def test_flags_ignore_reserved_bits():
    for byte in range(256):
        assert Flags.from_byte(byte) == Flags.from_byte(byte & 0b0001_1111)


def test_flag_bits():
    assert [int(bit) for bit in FlagBit] == [1, 2, 4, 8, 16]


def test_extra_flags():
    assert ExtraFlags.from_byte(2) is ExtraFlags.MAXIMUM_COMPRESSION
    assert ExtraFlags.from_byte(4) is ExtraFlags.FASTEST_ALGORITHM
    for byte in range(256):
        assert ExtraFlags.from_byte(byte & 0b1111_1001) is ExtraFlags.UNKNOWN


def test_extra_flags_zero_is_unknown():
    assert ExtraFlags.from_byte(0) is ExtraFlags.UNKNOWN


@pytest.mark.parametrize('byte, os', [
    (0, OperatingSystem.FAT),
    (1, OperatingSystem.AMIGA),
    (2, OperatingSystem.VMS),
    (3, OperatingSystem.UNIX),
    (4, OperatingSystem.VM_CMS),
    (5, OperatingSystem.ATARI_TOS),
    (6, OperatingSystem.HPFS),
    (7, OperatingSystem.MACINTOSH),
    (8, OperatingSystem.Z_SYSTEM),
    (9, OperatingSystem.CP_M),
    (10, OperatingSystem.TOPS_20),
    (11, OperatingSystem.NTFS),
    (12, OperatingSystem.QDOS),
    (13, OperatingSystem.RISCOS),
])
def test_operating_system(byte, os):
    assert OperatingSystem.from_byte(byte) is os


def test_operating_system_unknown():
    for byte in range(14, 256):
        assert OperatingSystem.from_byte(byte) is OperatingSystem.UNKNOWN

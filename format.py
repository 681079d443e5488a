"""
Определяет формат сжатого файла: магическое число и ошибки разбора.
"""

import zlib

from bitio import BitReader, BitWriter


BITS_PER_INT = 32
HUFF_NUMBER = 0xface8200
HUFF_TREE = HUFF_NUMBER | 1


class HuffError(ValueError):
    pass


class HeaderError(HuffError):
    pass


class StructuralError(HuffError):
    pass


class StreamError(HuffError):
    pass


def write_magic(writer: BitWriter):
    writer.write_bits(BITS_PER_INT, HUFF_TREE)


def read_magic(reader: BitReader):
    magic = reader.read_bits(BITS_PER_INT)

    if magic is None:
        raise HeaderError("unrecognized format: input shorter than magic number")
    if magic != HUFF_TREE:
        raise HeaderError(f"unrecognized format: illegal header starting with 0x{magic:08x}")


def calculate_crc32(data: bytes) -> int:
    return zlib.crc32(data) & 0xffffffff

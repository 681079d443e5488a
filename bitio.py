"""
Побитовое чтение и запись поверх байтовых потоков.
Биты идут от старшего к младшему внутри каждого байта.
"""

import io
from typing import BinaryIO, Optional


READ_CHUNK = 8192


class BitReader:
    def __init__(self, stream: BinaryIO):
        self.stream = stream
        self.start = stream.tell() if stream.seekable() else 0
        self.buffer = b''
        self.pos = 0
        self.bit_buffer = 0
        self.bit_count = 0
        self.bits_read = 0

    def _next_byte(self) -> Optional[int]:
        if self.pos >= len(self.buffer):
            self.buffer = self.stream.read(READ_CHUNK)
            self.pos = 0
            if not self.buffer:
                return None

        byte = self.buffer[self.pos]
        self.pos += 1
        return byte

    def read_bits(self, nbits: int) -> Optional[int]:
        """Return the next ``nbits`` bits as an int, or None at end of stream.

        None is returned when fewer than ``nbits`` bits remain.
        """
        while self.bit_count < nbits:
            byte = self._next_byte()
            if byte is None:
                return None
            self.bit_buffer = (self.bit_buffer << 8) | byte
            self.bit_count += 8

        self.bit_count -= nbits
        value = self.bit_buffer >> self.bit_count
        self.bit_buffer &= (1 << self.bit_count) - 1
        self.bits_read += nbits
        return value

    def reset(self):
        if not self.stream.seekable():
            raise io.UnsupportedOperation("input stream does not support rewinding")

        self.stream.seek(self.start)
        self.buffer = b''
        self.pos = 0
        self.bit_buffer = 0
        self.bit_count = 0
        self.bits_read = 0


class BitWriter:
    def __init__(self, stream: BinaryIO):
        self.stream = stream
        self.buffer = bytearray()
        self.bit_buffer = 0
        self.bit_count = 0
        self.bits_written = 0
        self.closed = False

    def write_bits(self, nbits: int, value: int):
        """Write the lowest ``nbits`` of ``value``, most significant bit first."""
        if self.closed:
            raise ValueError("write to closed BitWriter")

        self.bit_buffer = (self.bit_buffer << nbits) | (value & ((1 << nbits) - 1))
        self.bit_count += nbits
        self.bits_written += nbits

        while self.bit_count >= 8:
            self.bit_count -= 8
            self.buffer.append((self.bit_buffer >> self.bit_count) & 0xff)
        self.bit_buffer &= (1 << self.bit_count) - 1

        if len(self.buffer) >= READ_CHUNK:
            self.stream.write(bytes(self.buffer))
            self.buffer.clear()

    def close(self):
        """Pad the last partial byte with zeros and flush everything.

        The underlying stream stays open.
        """
        if self.closed:
            return

        if self.bit_count > 0:
            self.buffer.append((self.bit_buffer << (8 - self.bit_count)) & 0xff)
            self.bit_buffer = 0
            self.bit_count = 0

        if self.buffer:
            self.stream.write(bytes(self.buffer))
            self.buffer.clear()

        self.stream.flush()
        self.closed = True

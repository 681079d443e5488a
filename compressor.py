"""
Сжатие и разжатие потоков кодом Хаффмана.

Формат: 32-битное магическое число, дерево в прямом обходе,
затем коды символов и код псевдо-EOF без выравнивания по байтам.
"""

import io
import logging
from typing import BinaryIO, Dict, Optional

from bitio import BitReader, BitWriter
from format import StreamError, read_magic, write_magic
from huffman import BITS_PER_WORD, PSEUDO_EOF, BitCode, HuffmanTree, count_frequencies


DEBUG_LOW = 1
DEBUG_HIGH = 4

logger = logging.getLogger(__name__)


class HuffmanEncoder:
    def __init__(self, debug: int = 0, log: Optional[logging.Logger] = None):
        self.debug = debug
        self.log = log or logger

    def compress(self, source: BinaryIO, target: BinaryIO) -> int:
        """Compress ``source`` into ``target`` and return the number of bits written.

        The source is read twice; a stream that cannot seek is buffered
        in memory first.
        """
        if not source.readable():
            raise ValueError("source stream is not readable")

        if not source.seekable():
            source = io.BytesIO(source.read())

        reader = BitReader(source)
        writer = BitWriter(target)

        counts = count_frequencies(reader)
        tree = HuffmanTree().build(counts)
        codes = tree.codes()

        if self.debug >= DEBUG_HIGH:
            self.log.debug("counts: %s", {s: c for s, c in enumerate(counts) if c})
            self.log.debug("tree: %r", tree.root)
            self.log.debug("codes: %s", {s: str(c) for s, c in codes.items()})

        write_magic(writer)
        tree.write_header(writer)
        header_bits = writer.bits_written

        reader.reset()
        self._write_compressed(codes, reader, writer)
        writer.close()

        if self.debug >= DEBUG_LOW:
            self.log.info("compressed %d bits into %d bits (header %d bits)",
                          reader.bits_read, writer.bits_written, header_bits)

        return writer.bits_written

    def _write_compressed(self, codes: Dict[int, BitCode], reader: BitReader, writer: BitWriter):
        word = reader.read_bits(BITS_PER_WORD)
        while word is not None:
            code = codes[word]
            writer.write_bits(len(code), code.value)
            word = reader.read_bits(BITS_PER_WORD)

        code = codes[PSEUDO_EOF]
        writer.write_bits(len(code), code.value)


class HuffmanDecoder:
    def __init__(self, debug: int = 0, log: Optional[logging.Logger] = None):
        self.debug = debug
        self.log = log or logger

    def decompress(self, source: BinaryIO, target: BinaryIO) -> int:
        reader = BitReader(source)
        writer = BitWriter(target)

        read_magic(reader)
        tree = HuffmanTree.read_header(reader)

        if self.debug >= DEBUG_HIGH:
            self.log.debug("tree: %r", tree.root)

        self._read_compressed(tree, reader, writer)
        writer.close()

        if self.debug >= DEBUG_LOW:
            self.log.info("decompressed %d bits into %d bits",
                          reader.bits_read, writer.bits_written)

        return writer.bits_written

    def _read_compressed(self, tree: HuffmanTree, reader: BitReader, writer: BitWriter):
        root = tree.root
        current = root

        while True:
            bit = reader.read_bits(1)
            if bit is None:
                raise StreamError(
                    f"payload ended before pseudo-EOF at bit {reader.bits_read}")

            if not root.is_leaf():
                current = current.left if bit == 0 else current.right

            if current.is_leaf():
                if current.symbol == PSEUDO_EOF:
                    return

                writer.write_bits(BITS_PER_WORD, current.symbol)
                current = root


def compress(source: BinaryIO, target: BinaryIO, debug: int = 0,
             log: Optional[logging.Logger] = None) -> int:
    return HuffmanEncoder(debug, log).compress(source, target)


def decompress(source: BinaryIO, target: BinaryIO, debug: int = 0,
               log: Optional[logging.Logger] = None) -> int:
    return HuffmanDecoder(debug, log).decompress(source, target)


def compress_bytes(data: bytes) -> bytes:
    output = io.BytesIO()
    compress(io.BytesIO(data), output)
    return output.getvalue()


def decompress_bytes(data: bytes) -> bytes:
    output = io.BytesIO()
    decompress(io.BytesIO(data), output)
    return output.getvalue()

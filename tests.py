import io
import logging
import os
import random
import shutil
import tempfile
import unittest

from bitio import BitReader, BitWriter
from compressor import (DEBUG_HIGH, HuffmanDecoder, HuffmanEncoder, compress, compress_bytes,
                        decompress, decompress_bytes)
from fileops import FileCompressor
from format import HUFF_TREE, HeaderError, StreamError, StructuralError, calculate_crc32
from huffman import PSEUDO_EOF, BitCode, HuffmanTree, count_frequencies
import main as cli


class NonSeekableStream(io.RawIOBase):
    def __init__(self, data: bytes):
        self.inner = io.BytesIO(data)

    def readable(self):
        return True

    def seekable(self):
        return False

    def readinto(self, buffer):
        chunk = self.inner.read(len(buffer))
        buffer[:len(chunk)] = chunk
        return len(chunk)


def tree_for(data: bytes) -> HuffmanTree:
    counts = count_frequencies(BitReader(io.BytesIO(data)))
    return HuffmanTree().build(counts)


class TestBitIO(unittest.TestCase):
    def test_write_pads_last_byte(self):
        output = io.BytesIO()
        writer = BitWriter(output)
        writer.write_bits(3, 0b101)
        writer.write_bits(9, 256)
        writer.close()

        self.assertEqual(output.getvalue(), b'\xb0\x00')
        self.assertEqual(writer.bits_written, 12)

    def test_read_back_written_bits(self):
        reader = BitReader(io.BytesIO(b'\xb0\x00'))
        self.assertEqual(reader.read_bits(3), 0b101)
        self.assertEqual(reader.read_bits(9), 256)
        self.assertEqual(reader.read_bits(4), 0)
        self.assertIsNone(reader.read_bits(1))
        self.assertEqual(reader.bits_read, 16)

    def test_read_past_end(self):
        reader = BitReader(io.BytesIO(b'\xff'))
        self.assertIsNone(reader.read_bits(9))

    def test_read_32_bits(self):
        reader = BitReader(io.BytesIO(b'\xfa\xce\x82\x01'))
        self.assertEqual(reader.read_bits(32), HUFF_TREE)

    def test_wide_write(self):
        output = io.BytesIO()
        writer = BitWriter(output)
        writer.write_bits(40, (1 << 40) - 1)
        writer.close()
        self.assertEqual(output.getvalue(), b'\xff' * 5)

    def test_close_is_idempotent(self):
        output = io.BytesIO()
        writer = BitWriter(output)
        writer.write_bits(1, 1)
        writer.close()
        writer.close()
        self.assertEqual(output.getvalue(), b'\x80')

        with self.assertRaises(ValueError):
            writer.write_bits(1, 1)

    def test_reset(self):
        reader = BitReader(io.BytesIO(b'\x01\x02'))
        self.assertEqual(reader.read_bits(8), 1)
        self.assertEqual(reader.read_bits(8), 2)
        reader.reset()
        self.assertEqual(reader.read_bits(8), 1)
        self.assertEqual(reader.bits_read, 8)

    def test_reset_non_seekable(self):
        reader = BitReader(NonSeekableStream(b'\x01'))
        self.assertEqual(reader.read_bits(8), 1)
        with self.assertRaises(io.UnsupportedOperation):
            reader.reset()


class TestHuffmanTree(unittest.TestCase):
    def test_count_frequencies(self):
        counts = count_frequencies(BitReader(io.BytesIO(b'AAAB')))
        self.assertEqual(len(counts), 257)
        self.assertEqual(counts[65], 3)
        self.assertEqual(counts[66], 1)
        self.assertEqual(counts[PSEUDO_EOF], 1)
        self.assertEqual(sum(counts), 5)

    def test_count_frequencies_empty(self):
        counts = count_frequencies(BitReader(io.BytesIO(b'')))
        self.assertEqual(counts[PSEUDO_EOF], 1)
        self.assertEqual(sum(counts), 1)

    def test_frequent_symbol_gets_shortest_code(self):
        codes = tree_for(b'AAAB').codes()
        self.assertEqual(codes[65], BitCode('1'))
        self.assertEqual(codes[66], BitCode('00'))
        self.assertEqual(codes[PSEUDO_EOF], BitCode('01'))

    def test_same_table_same_tree(self):
        data = b"abracadabra, said the magician"
        first = tree_for(data)
        second = tree_for(data)
        self.assertEqual(repr(first.root), repr(second.root))
        self.assertEqual(first.codes(), second.codes())

    def test_mapping_and_list_agree(self):
        from_list = tree_for(b'AAAB')
        from_mapping = HuffmanTree().build({65: 3, 66: 1, PSEUDO_EOF: 1})
        self.assertEqual(from_list.codes(), from_mapping.codes())

    def test_codes_are_prefix_free(self):
        random.seed(7)
        data = bytes(random.choice(b"etaoin shrdlu") for _ in range(2000)) + bytes(range(40))
        codes = list(tree_for(data).codes().values())

        for i, code in enumerate(codes):
            for j, other in enumerate(codes):
                if i != j:
                    self.assertFalse(code.is_prefix_of(other), f"{code} prefixes {other}")

    def test_pseudo_eof_present_once(self):
        for data in (b'', b'\xff' * 100, bytes(range(256))):
            symbols = tree_for(data).symbols()
            self.assertEqual(symbols.count(PSEUDO_EOF), 1)
            self.assertEqual(len(symbols), len(set(symbols)))

    def test_empty_input_tree_is_single_leaf(self):
        tree = tree_for(b'')
        self.assertTrue(tree.root.is_leaf())
        self.assertEqual(tree.root.symbol, PSEUDO_EOF)
        self.assertEqual(tree.codes(), {PSEUDO_EOF: BitCode('0')})

    def test_no_node_with_one_child(self):
        tree = tree_for(b"mississippi river")
        stack = [tree.root]
        while stack:
            node = stack.pop()
            if not node.is_leaf():
                self.assertIsNotNone(node.left)
                self.assertIsNotNone(node.right)
                self.assertEqual(node.weight, node.left.weight + node.right.weight)
                stack.extend([node.left, node.right])

    def test_empty_table_rejected(self):
        with self.assertRaises(ValueError):
            HuffmanTree().build([0] * 257)

    def test_header_round_trip(self):
        tree = tree_for(b"The quick brown fox jumps over the lazy dog")

        output = io.BytesIO()
        writer = BitWriter(output)
        tree.write_header(writer)
        writer.close()

        output.seek(0)
        restored = HuffmanTree.read_header(BitReader(output))
        self.assertEqual(restored.symbols(), tree.symbols())
        self.assertEqual(restored.codes(), tree.codes())

    def test_header_truncated(self):
        with self.assertRaises(StructuralError):
            HuffmanTree.read_header(BitReader(io.BytesIO(b'')))

    def test_header_truncated_inside_symbol(self):
        with self.assertRaises(StructuralError):
            HuffmanTree.read_header(BitReader(io.BytesIO(b'\x80')))

    def test_header_symbol_out_of_range(self):
        with self.assertRaises(StructuralError):
            HuffmanTree.read_header(BitReader(io.BytesIO(b'\xff\xc0')))

    def test_header_too_deep(self):
        with self.assertRaises(StructuralError):
            HuffmanTree.read_header(BitReader(io.BytesIO(b'\x00' * 64)))

    def test_bitcode(self):
        code = BitCode().append(0).append(1).append(1)
        self.assertEqual(str(code), '011')
        self.assertEqual(len(code), 3)
        self.assertEqual(code.value, 3)
        self.assertEqual(list(code), [0, 1, 1])
        self.assertTrue(BitCode('01').is_prefix_of(code))
        self.assertFalse(code.is_prefix_of(BitCode('01')))


class TestHuffmanCodec(unittest.TestCase):
    def assertRoundTrip(self, data: bytes):
        self.assertEqual(decompress_bytes(compress_bytes(data)), data)

    def test_round_trip(self):
        samples = [
            b'',
            b'A',
            b'AAAB',
            b'\xff' * 1000,
            bytes(range(256)),
            b"Lorem ipsum dolor sit amet " * 200,
        ]
        for data in samples:
            with self.subTest(size=len(data)):
                self.assertRoundTrip(data)

    def test_round_trip_random(self):
        random.seed(42)
        data = bytes(random.getrandbits(8) for _ in range(10 * 1024))
        self.assertRoundTrip(data)

    def test_skewed_frequencies(self):
        data = b''.join(bytes([i]) * (1 << (i % 16)) for i in range(32))
        self.assertRoundTrip(data)

    def test_starts_with_magic(self):
        self.assertEqual(compress_bytes(b'AAAB')[:4], b'\xfa\xce\x82\x01')

    def test_empty_input_layout(self):
        # magic, leaf bit, symbol 256 in 9 bits, one-bit pseudo-EOF code
        self.assertEqual(compress_bytes(b''), b'\xfa\xce\x82\x01\xc0\x00')

    def test_returns_bits_written(self):
        self.assertEqual(compress(io.BytesIO(b''), io.BytesIO()), 43)

        compressed = io.BytesIO(compress_bytes(b'AAAB'))
        self.assertEqual(decompress(compressed, io.BytesIO()), 32)

    def test_text_shrinks(self):
        data = b"Hello World! " * 100
        self.assertLess(len(compress_bytes(data)), len(data))

    def test_bad_magic(self):
        output = io.BytesIO()
        with self.assertRaises(HeaderError):
            decompress(io.BytesIO(b'\x00\x00\x00\x00' + b'\xff' * 16), output)
        self.assertEqual(output.getvalue(), b'')

    def test_input_shorter_than_magic(self):
        with self.assertRaises(HeaderError):
            decompress_bytes(b'\xfa\xce')

    def test_missing_tree(self):
        with self.assertRaises(StructuralError):
            decompress_bytes(b'\xfa\xce\x82\x01')

    def test_truncated_payload(self):
        compressed = compress_bytes(b"hello world" * 20)
        with self.assertRaises(StreamError):
            decompress_bytes(compressed[:-10])

    def test_error_kinds_are_value_errors(self):
        for error in (HeaderError, StructuralError, StreamError):
            self.assertTrue(issubclass(error, ValueError))

    def test_non_seekable_source(self):
        data = b"streamed input, read twice"
        output = io.BytesIO()
        compress(NonSeekableStream(data), output)
        self.assertEqual(decompress_bytes(output.getvalue()), data)

    def test_source_from_current_position(self):
        source = io.BytesIO(b'skipAB')
        source.seek(4)
        output = io.BytesIO()
        compress(source, output)
        self.assertEqual(decompress_bytes(output.getvalue()), b'AB')

    def test_unreadable_source(self):
        with tempfile.TemporaryFile('wb') as f:
            with self.assertRaises(ValueError):
                compress(f, io.BytesIO())

    def test_debug_logging(self):
        log = logging.getLogger('tests.huffman')
        output = io.BytesIO()

        with self.assertLogs(log, level='DEBUG') as captured:
            HuffmanEncoder(debug=DEBUG_HIGH, log=log).compress(io.BytesIO(b'AAAB'), output)
        self.assertTrue(any('codes' in line for line in captured.output))

        output.seek(0)
        with self.assertLogs(log, level='DEBUG') as captured:
            HuffmanDecoder(debug=DEBUG_HIGH, log=log).decompress(output, io.BytesIO())
        self.assertTrue(any('tree' in line for line in captured.output))


class TestFileCompressor(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.processor = FileCompressor()

    def tearDown(self):
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def write_file(self, name: str, data: bytes) -> str:
        path = os.path.join(self.temp_dir, name)
        with open(path, 'wb') as f:
            f.write(data)
        return path

    def test_compress_decompress_file(self):
        data = b"Hello World! " * 100
        source = self.write_file("test.txt", data)

        report = self.processor.compress_file(source)
        self.assertEqual(report.target, source + '.hf')
        self.assertEqual(report.source_size, len(data))
        self.assertLess(report.target_size, report.source_size)

        restored = self.processor.decompress_file(report.target)
        self.assertEqual(restored.target, source + '.uhf')

        with open(restored.target, 'rb') as f:
            self.assertEqual(f.read(), data)

    def test_empty_file(self):
        source = self.write_file("empty.bin", b'')
        report = self.processor.compress_file(source)
        self.assertEqual(report.target_size, 6)
        self.assertEqual(report.ratio, 0)
        self.assertIsInstance(report.ratio, float)

        restored = self.processor.decompress_file(report.target)
        self.assertEqual(restored.target_size, 0)

    def test_bad_input_removes_output(self):
        source = self.write_file("plain.txt", b"not compressed at all")
        target = os.path.join(self.temp_dir, "plain.out")

        with self.assertRaises(HeaderError):
            self.processor.decompress_file(source, target)
        self.assertFalse(os.path.exists(target))

    def test_target_same_as_source(self):
        data = b"precious data " * 50
        source = self.write_file("precious.txt", data)

        with self.assertRaises(ValueError):
            self.processor.compress_file(source, source)
        with self.assertRaises(ValueError):
            self.processor.decompress_file(source, os.path.join(self.temp_dir, ".", "precious.txt"))

        with open(source, 'rb') as f:
            self.assertEqual(f.read(), data)

    def test_batch_skips_colliding_names(self):
        os.makedirs(os.path.join(self.temp_dir, "a"))
        os.makedirs(os.path.join(self.temp_dir, "b"))
        first = self.write_file(os.path.join("a", "x.txt"), b"first x\n" * 20)
        second = self.write_file(os.path.join("b", "x.txt"), b"second x\n" * 20)
        out_dir = os.path.join(self.temp_dir, "packed")
        back_dir = os.path.join(self.temp_dir, "unpacked")

        reports = self.processor.compress_files([first, second], out_dir)
        self.assertEqual(len(reports), 1)
        self.assertEqual(reports[0].source, first)

        restored = self.processor.decompress_files([reports[0].target, reports[0].target], back_dir)
        self.assertEqual(len(restored), 1)

        with open(restored[0].target, 'rb') as f:
            self.assertEqual(f.read(), b"first x\n" * 20)

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            self.processor.compress_file(os.path.join(self.temp_dir, "nope.txt"))
        with self.assertRaises(FileNotFoundError):
            self.processor.verify_file(os.path.join(self.temp_dir, "nope.txt"))

    def test_verify_file(self):
        source = self.write_file("verify.bin", bytes(range(256)) * 4)
        self.assertTrue(self.processor.verify_file(source))

    def test_batch_into_directory(self):
        first = self.write_file("file1.txt", b"Content of file 1\n" * 50)
        second = self.write_file("file2.txt", b"Content of file 2\n" * 50)
        missing = os.path.join(self.temp_dir, "missing.txt")
        out_dir = os.path.join(self.temp_dir, "packed")
        back_dir = os.path.join(self.temp_dir, "unpacked")

        reports = self.processor.compress_files([first, missing, second], out_dir)
        self.assertEqual(len(reports), 2)
        self.assertTrue(os.path.isfile(os.path.join(out_dir, "file1.txt.hf")))

        restored = self.processor.decompress_files([r.target for r in reports], back_dir)
        self.assertEqual(len(restored), 2)

        with open(os.path.join(back_dir, "file2.txt.uhf"), 'rb') as f:
            extracted = f.read()
        self.assertEqual(calculate_crc32(extracted), calculate_crc32(b"Content of file 2\n" * 50))


class TestCommandLine(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def test_compress_and_decompress(self):
        source = os.path.join(self.temp_dir, "data.txt")
        packed = os.path.join(self.temp_dir, "data.hf")
        unpacked = os.path.join(self.temp_dir, "data.out")

        with open(source, 'wb') as f:
            f.write(b"command line round trip\n" * 40)

        cli.main(['compress', source, '-o', packed])
        cli.main(['decompress', packed, '-o', unpacked])

        with open(source, 'rb') as f:
            original = f.read()
        with open(unpacked, 'rb') as f:
            self.assertEqual(f.read(), original)

        cli.main(['verify', source])

    def test_bad_input_exits_with_error(self):
        source = os.path.join(self.temp_dir, "garbage.hf")
        with open(source, 'wb') as f:
            f.write(b"garbage")

        with self.assertRaises(SystemExit) as cm:
            cli.main(['decompress', source])
        self.assertEqual(cm.exception.code, 1)

    def test_output_over_source_exits_with_error(self):
        source = os.path.join(self.temp_dir, "keep.txt")
        with open(source, 'wb') as f:
            f.write(b"keep me\n" * 10)

        with self.assertRaises(SystemExit) as cm:
            cli.main(['compress', source, '-o', source])
        self.assertEqual(cm.exception.code, 1)

        with open(source, 'rb') as f:
            self.assertEqual(f.read(), b"keep me\n" * 10)

    def test_output_with_many_files(self):
        with self.assertRaises(SystemExit) as cm:
            cli.main(['compress', 'a', 'b', '-o', 'c'])
        self.assertEqual(cm.exception.code, 2)


def run_tests():
    loader = unittest.TestLoader()
    suite = unittest.TestSuite()

    suite.addTests(loader.loadTestsFromTestCase(TestBitIO))
    suite.addTests(loader.loadTestsFromTestCase(TestHuffmanTree))
    suite.addTests(loader.loadTestsFromTestCase(TestHuffmanCodec))
    suite.addTests(loader.loadTestsFromTestCase(TestFileCompressor))
    suite.addTests(loader.loadTestsFromTestCase(TestCommandLine))

    runner = unittest.TextTestRunner(verbosity=2)
    result = runner.run(suite)

    return 0 if result.wasSuccessful() else 1


if __name__ == '__main__':
    import sys
    sys.exit(run_tests())

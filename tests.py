import unittest
import tempfile
import os
import io
import sys
import random
import shutil
from contextlib import redirect_stdout
from dataclasses import replace

from bitstream import BitReader, BitWriter, BitStreamExhausted
from huffman import (HuffmanTree, Internal, Leaf, build_tree, count_frequencies,
                     generate_codes, merge_frequencies)
from format import Container, ContainerHeader, HEADER_SIZE, MAGIC, calculate_crc32
from errors import ContainerError, CorruptPayload, MalformedTree, UnsupportedInput
from codec import (HuffmanCodec, compress, compress_bytes, compress_text, decompress,
                   decompress_bytes, decompress_text)
from archiver import HuffmanArchiver
import main


def assert_prefix_free(test, codes):
    values = list(codes.values())
    for i, a in enumerate(values):
        test.assertGreaterEqual(len(a), 1)
        for j, b in enumerate(values):
            if i != j:
                test.assertFalse(b.startswith(a), f"{a} is a prefix of {b}")


class TestFrequencyAnalysis(unittest.TestCase):
    def test_counts(self):
        freqs = count_frequencies(b"abracadabra")
        self.assertEqual(freqs, {97: 5, 98: 2, 114: 2, 99: 1, 100: 1})
        self.assertEqual(sum(freqs.values()), 11)

    def test_empty(self):
        self.assertEqual(count_frequencies(b""), {})

    def test_sharded_counting_matches_single_pass(self):
        data = bytes(range(256)) * 50 + b"x" * 1000
        self.assertEqual(count_frequencies(data, workers=4, shard_size=1000),
                         count_frequencies(data))

    def test_merge(self):
        merged = merge_frequencies([{1: 2}, {1: 3, 2: 1}, {}])
        self.assertEqual(merged, {1: 5, 2: 1})


class TestTreeBuilder(unittest.TestCase):
    def test_empty_table(self):
        self.assertIsNone(build_tree({}))
        self.assertEqual(generate_codes(None), {})

    def test_single_symbol_is_wrapped(self):
        root = build_tree({65: 3})
        self.assertIsInstance(root, Internal)
        self.assertEqual(root.left, Leaf(65, 3))
        self.assertIsNone(root.right)
        self.assertEqual(generate_codes(root), {65: '0'})

    def test_equal_weights_merge_in_insertion_order(self):
        codes = generate_codes(build_tree({100: 1, 99: 1, 98: 1, 97: 1}))
        self.assertEqual(codes, {97: '00', 98: '01', 99: '10', 100: '11'})

    def test_lightest_node_goes_left(self):
        codes = generate_codes(build_tree({97: 5, 98: 2, 99: 1}))
        self.assertEqual(codes, {99: '00', 98: '01', 97: '1'})

    def test_root_weight_is_total(self):
        freqs = count_frequencies(b"The quick brown fox jumps over the lazy dog")
        self.assertEqual(build_tree(freqs).weight, sum(freqs.values()))

    def test_zero_counts_ignored(self):
        self.assertEqual(generate_codes(build_tree({1: 0, 2: 4})), {2: '0'})

    def test_symbol_out_of_range(self):
        with self.assertRaises(ValueError):
            build_tree({256: 1})

    def test_deterministic(self):
        freqs = count_frequencies(b"mississippi river")
        self.assertEqual(build_tree(freqs), build_tree(dict(reversed(list(freqs.items())))))


class TestCodeGenerator(unittest.TestCase):
    def test_prefix_free(self):
        for data in (b"aaabbc", b"abracadabra", bytes(range(256)),
                     b"Lorem ipsum dolor sit amet " * 20):
            codes = generate_codes(build_tree(count_frequencies(data)))
            self.assertEqual(len(codes), len(set(data)))
            assert_prefix_free(self, codes)

    def test_skewed_distribution_depth(self):
        codes = generate_codes(build_tree({i: 2 ** i for i in range(20)}))
        self.assertEqual(max(len(c) for c in codes.values()), 19)
        self.assertEqual(len(codes[19]), 1)
        assert_prefix_free(self, codes)

    def test_full_alphabet_skewed_codes_exceed_machine_word(self):
        tree = HuffmanTree.build({i: 2 ** i for i in range(256)})
        self.assertEqual(max(len(c) for c in tree.codes.values()), 255)

        data, bits = tree.serialize()
        self.assertEqual(HuffmanTree.deserialize(data, bits).codes, tree.codes)


class TestTreeSerialization(unittest.TestCase):
    def test_roundtrip(self):
        tree = HuffmanTree.build(count_frequencies(b"abracadabra"))
        data, bits = tree.serialize()
        self.assertEqual(bits, 5 * 9 + 4)
        self.assertEqual(len(data), 7)
        self.assertEqual(HuffmanTree.deserialize(data, bits).codes, tree.codes)

    def test_exact_bits(self):
        data, bits = HuffmanTree.build({97: 1, 98: 1}).serialize()
        self.assertEqual(bits, 19)
        self.assertEqual(data, b'\x58\x6c\x40')

    def test_single_symbol(self):
        data, bits = HuffmanTree.build({65: 3}).serialize()
        self.assertEqual(bits, 10)
        restored = HuffmanTree.deserialize(data, bits)
        self.assertIsNone(restored.root.right)
        self.assertEqual(restored.codes, {65: '0'})

    def test_empty_tree(self):
        self.assertEqual(HuffmanTree().serialize(), (b'', 0))
        self.assertTrue(HuffmanTree.deserialize(b'', 0).is_empty)

    def test_truncated_leaf(self):
        data, bits = HuffmanTree.build({97: 1, 98: 1}).serialize()
        with self.assertRaises(MalformedTree):
            HuffmanTree.deserialize(data, bits - 1)

        data, bits = HuffmanTree.build({65: 3}).serialize()
        with self.assertRaises(MalformedTree):
            HuffmanTree.deserialize(data, bits - 1)

    def test_internal_without_children(self):
        with self.assertRaises(MalformedTree):
            HuffmanTree.deserialize(b'\x00', 1)

    def test_trailing_bits(self):
        data, bits = HuffmanTree.build({97: 1, 98: 1}).serialize()
        with self.assertRaises(MalformedTree):
            HuffmanTree.deserialize(data, bits + 1)

    def test_bit_length_beyond_section(self):
        with self.assertRaises(MalformedTree):
            HuffmanTree.deserialize(b'\x00', 9)

    def test_too_deep(self):
        with self.assertRaises(MalformedTree):
            HuffmanTree.deserialize(b'\x00' * 64, 512)

    def test_leaf_root_rejected(self):
        with self.assertRaises(MalformedTree):
            HuffmanTree.deserialize(b'\xa0\x80', 9)

    def test_duplicate_symbol_rejected(self):
        with self.assertRaises(MalformedTree):
            HuffmanTree.deserialize(b'\x50\x68\x20', 19)


class TestBitStream(unittest.TestCase):
    def test_writer(self):
        writer = BitWriter()
        writer.write_bits('101')
        writer.write_bit(1)
        writer.write_uint(5, 4)
        self.assertEqual(writer.bit_length, 8)
        self.assertEqual(writer.to_bytes(), (b'\xb5', 0))

    def test_writer_padding(self):
        writer = BitWriter()
        writer.write_bits('1')
        self.assertEqual(writer.to_bytes(), (b'\x80', 7))

    def test_writer_empty(self):
        self.assertEqual(BitWriter().to_bytes(), (b'', 0))

    def test_writer_uint_overflow(self):
        with self.assertRaises(ValueError):
            BitWriter().write_uint(256, 8)

    def test_reader(self):
        reader = BitReader(b'\xb5')
        self.assertEqual(reader.peek_bit(), 1)
        self.assertEqual(reader.position, 0)
        self.assertEqual([reader.read_bit() for _ in range(4)], [1, 0, 1, 1])
        self.assertEqual(reader.read_uint(4), 5)
        self.assertTrue(reader.exhausted)

    def test_reader_respects_padding(self):
        reader = BitReader(b'\x80', padding=7)
        self.assertEqual(reader.bit_length, 1)
        self.assertEqual(reader.read_bit(), 1)
        with self.assertRaises(BitStreamExhausted):
            reader.read_bit()
        with self.assertRaises(EOFError):
            reader.peek_bit()

    def test_read_uint_short(self):
        with self.assertRaises(BitStreamExhausted):
            BitReader(b'\xff', bit_length=3).read_uint(4)

    def test_iter_bits(self):
        reader = BitReader(b'\xf0', padding=2)
        self.assertEqual(list(reader.iter_bits()), [1, 1, 1, 1, 0, 0])
        self.assertTrue(reader.exhausted)

    def test_bit_length_out_of_range(self):
        with self.assertRaises(ValueError):
            BitReader(b'\x00', bit_length=9)
        with self.assertRaises(ValueError):
            BitReader(b'', padding=3)


class TestContainerFormat(unittest.TestCase):
    def test_header_roundtrip(self):
        header = ContainerHeader(padding=3, original_size=1 << 40, crc32=0xdeadbeef, tree_bits=49)
        data = header.serialize()
        self.assertEqual(len(data), HEADER_SIZE)
        self.assertTrue(data.startswith(MAGIC))
        self.assertEqual(ContainerHeader.deserialize(data), header)
        self.assertEqual(header.tree_size, 7)

    def test_empty_container(self):
        data = Container.empty().to_bytes()
        self.assertEqual(len(data), HEADER_SIZE)
        self.assertEqual(Container.from_bytes(data), Container.empty())

    def test_short_header(self):
        with self.assertRaises(ContainerError):
            Container.from_bytes(MAGIC)

    def test_bad_version(self):
        data = bytearray(Container.empty().to_bytes())
        data[4] = 99
        with self.assertRaises(ContainerError):
            Container.from_bytes(bytes(data))

    def test_bad_padding(self):
        data = bytearray(Container.empty().to_bytes())
        data[5] = 8
        with self.assertRaises(ContainerError):
            Container.from_bytes(bytes(data))

    def test_crc32(self):
        self.assertEqual(calculate_crc32(b"123456789"), 0xcbf43926)


class TestCodec(unittest.TestCase):
    def setUp(self):
        self.codec = HuffmanCodec()

    def roundtrip(self, data):
        self.assertEqual(decompress_bytes(compress_bytes(data)), data)
        self.assertEqual(decompress(compress(data)), data)

    def test_roundtrip(self):
        random.seed(42)
        samples = [
            b"",
            b"A",
            b"aaabbc",
            b"The quick brown fox jumps over the lazy dog",
            b"\x00" * 1000,
            bytes(random.getrandbits(8) for _ in range(10 * 1024)),
            b"Lorem ipsum dolor sit amet " * 200,
        ]
        for data in samples:
            self.roundtrip(data)

    def test_deterministic(self):
        data = b"Hello World! " * 100
        self.assertEqual(compress_bytes(data), compress_bytes(data))
        self.assertEqual(HuffmanCodec().compress(data), HuffmanCodec().compress(data))

    def test_empty_input(self):
        container = self.codec.compress(b"")
        self.assertEqual(container, Container.empty())
        self.assertEqual(len(container.to_bytes()), HEADER_SIZE)
        self.assertEqual(self.codec.decompress(container), b"")

    def test_single_symbol(self):
        self.assertEqual(self.codec.build_tree(b"AAA").codes, {65: '0'})
        container = self.codec.compress(bytes([65, 65, 65]))
        self.assertEqual(container.payload, b'\x00')
        self.assertEqual(container.padding, 5)
        self.assertEqual(self.codec.decompress(container), b"AAA")

    def test_skewed_distribution_shrinks(self):
        container = self.codec.compress(b"aaaaaaaaab")
        self.assertLess(container.body_size, 10)
        self.assertEqual(container.payload, b'\xff\x80')
        self.assertEqual(container.padding, 6)
        self.assertEqual(container.tree_bits, 19)

    def test_uniform_distribution_still_roundtrips(self):
        data = bytes(range(256))
        container = self.codec.compress(data)
        self.assertGreater(len(container), len(data))
        self.assertEqual(self.codec.decompress(container), data)

    def test_truncated_payload(self):
        for data in (b"This is a test" * 100, b"aaaaaaaaab", b"AAA"):
            blob = compress_bytes(data)
            with self.assertRaises(CorruptPayload):
                decompress_bytes(blob[:-1])

    def test_extra_payload(self):
        blob = compress_bytes(b"This is a test" * 100)
        with self.assertRaises(CorruptPayload):
            decompress_bytes(blob + b'\x00')

    def test_flipped_payload_bit(self):
        container = self.codec.compress(b"abracadabra" * 20)
        payload = bytearray(container.payload)
        payload[-1] ^= 0x80
        with self.assertRaises(CorruptPayload):
            self.codec.decompress(replace(container, payload=bytes(payload)))

    def test_corrupted_header(self):
        blob = bytearray(compress_bytes(b"Hello World" * 50))
        blob[0] ^= 0xFF
        with self.assertRaises(ContainerError):
            decompress_bytes(bytes(blob))

    def test_truncated_tree_section(self):
        blob = compress_bytes(b"Hello World" * 50)
        with self.assertRaises(MalformedTree):
            decompress_bytes(blob[:HEADER_SIZE + 1])

    def test_tampered_tree_length(self):
        container = self.codec.compress(b"Hello World" * 50)
        with self.assertRaises(MalformedTree):
            self.codec.decompress(replace(container, tree_bits=container.tree_bits - 1))

    def test_missing_tree(self):
        container = self.codec.compress(b"Hello World")
        with self.assertRaises(MalformedTree):
            self.codec.decompress(replace(container, tree=b'', tree_bits=0))

    def test_crc_mismatch(self):
        container = self.codec.compress(b"Hello World")
        with self.assertRaises(CorruptPayload):
            self.codec.decompress(replace(container, crc32=container.crc32 ^ 1))

    def test_invalid_code_at_single_symbol_root(self):
        container = self.codec.compress(b"AAA")
        with self.assertRaises(CorruptPayload):
            self.codec.decompress(replace(container, payload=b'\x20'))

    def test_padding_exceeds_payload(self):
        container = self.codec.compress(b"A")
        self.assertEqual(container.padding, 7)
        with self.assertRaises(CorruptPayload):
            self.codec.decompress(replace(container, payload=b''))

    def test_empty_container_with_payload(self):
        with self.assertRaises(CorruptPayload):
            self.codec.decompress(replace(Container.empty(), payload=b'\x00'))

    def test_unsupported_input(self):
        with self.assertRaises(UnsupportedInput):
            self.codec.compress("text")
        with self.assertRaises(UnsupportedInput):
            HuffmanCodec(max_input_size=4).compress(b"12345")
        with self.assertRaises(ValueError):
            HuffmanCodec(max_input_size=4).compress(b"12345")

    def test_bytes_like_input(self):
        data = b"bytes like input"
        self.assertEqual(self.codec.compress(bytearray(data)), self.codec.compress(data))
        self.assertEqual(self.codec.compress(memoryview(data)), self.codec.compress(data))

    def test_workers_do_not_change_output(self):
        random.seed(7)
        data = bytes(random.choice(b"abcdefgh") for _ in range(5000))
        sharded = HuffmanCodec(workers=4, shard_size=64)
        self.assertEqual(sharded.compress_bytes(data), HuffmanCodec().compress_bytes(data))
        self.assertEqual(sharded.decompress_bytes(sharded.compress_bytes(data)), data)

    def test_invalid_config(self):
        with self.assertRaises(ValueError):
            HuffmanCodec(workers=0)
        with self.assertRaises(ValueError):
            HuffmanCodec(shard_size=0)

    def test_text_helpers(self):
        text = "Huffman coding: héllo wörld ✓"
        self.assertEqual(decompress_text(compress_text(text)), text)
        self.assertEqual(decompress_text(compress_text(text, 'utf-16'), 'utf-16'), text)

    def test_analyze(self):
        stats = self.codec.analyze(b"aaaaaaaaab")
        self.assertEqual(stats.original_size, 10)
        self.assertEqual(stats.distinct_symbols, 2)
        self.assertEqual(stats.average_code_length, 1.0)
        self.assertAlmostEqual(stats.entropy, 0.469, places=3)
        self.assertEqual(stats.body_size, 5)
        self.assertEqual(stats.compressed_size, HEADER_SIZE + 5)
        self.assertEqual(stats.codes, {97: '1', 98: '0'})

    def test_analyze_empty(self):
        stats = self.codec.analyze(b"")
        self.assertEqual(stats.original_size, 0)
        self.assertEqual(stats.compression_ratio, 0)
        self.assertEqual(stats.codes, {})


class TestArchiver(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.archiver = HuffmanArchiver()

    def tearDown(self):
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def write(self, name, data):
        path = os.path.join(self.temp_dir, name)
        with open(path, 'wb') as f:
            f.write(data)
        return path

    def test_compress_decompress_file(self):
        data = b"Hello World! " * 100
        source = self.write("test.txt", data)

        packed = self.archiver.compress_file(source)
        self.assertEqual(packed, source + ".huff")
        self.assertLess(os.path.getsize(packed), len(data))

        restore_dir = os.path.join(self.temp_dir, "restored")
        restored = self.archiver.decompress_file(packed, restore_dir)
        self.assertEqual(restored, os.path.join(restore_dir, "test.txt"))

        with open(restored, 'rb') as f:
            self.assertEqual(f.read(), data)

    def test_names(self):
        self.assertEqual(HuffmanArchiver.compressed_name("/a/b.txt"), "b.txt.huff")
        self.assertEqual(HuffmanArchiver.decompressed_name("/a/b.txt.huff"), "b.txt")
        self.assertEqual(HuffmanArchiver.decompressed_name("/a/b.bin"), "b.bin.out")

    def test_batch_skips_missing_and_corrupt(self):
        good = self.write("good.txt", b"Content of file\n" * 50)
        missing = os.path.join(self.temp_dir, "missing.txt")
        out_dir = os.path.join(self.temp_dir, "packed")

        with redirect_stdout(io.StringIO()) as out:
            packed = self.archiver.compress_files([good, missing], out_dir)
        self.assertEqual(packed, [os.path.join(out_dir, "good.txt.huff")])
        self.assertIn("missing.txt not found", out.getvalue())

        corrupt = self.write("bad.txt.huff", b"not a container")
        restore_dir = os.path.join(self.temp_dir, "restored")
        with redirect_stdout(io.StringIO()) as out:
            restored = self.archiver.decompress_files(packed + [corrupt], restore_dir)
        self.assertEqual(restored, [os.path.join(restore_dir, "good.txt")])
        self.assertIn("FAILED", out.getvalue())

    def test_show_info_and_codes(self):
        source = self.write("skewed.txt", b"aaaaaaaaab")
        packed = self.archiver.compress_file(source)

        with redirect_stdout(io.StringIO()) as out:
            self.archiver.show_info(packed)
            self.archiver.show_codes(source)
        text = out.getvalue()
        self.assertIn("Original size", text)
        self.assertIn("Distinct symbols", text)
        self.assertIn("'a'", text)


class TestCommandLine(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_compress_and_decompress(self):
        source = os.path.join(self.temp_dir, "file1.txt")
        data = b"Content of file 1\n" * 50
        with open(source, 'wb') as f:
            f.write(data)

        packed_dir = os.path.join(self.temp_dir, "packed")
        restore_dir = os.path.join(self.temp_dir, "restored")

        with redirect_stdout(io.StringIO()):
            main.main(['compress', source, '-o', packed_dir, '-j', '2'])
            main.main(['decompress', os.path.join(packed_dir, "file1.txt.huff"), '-o', restore_dir])
            main.main(['info', os.path.join(packed_dir, "file1.txt.huff")])

        with open(os.path.join(restore_dir, "file1.txt"), 'rb') as f:
            self.assertEqual(f.read(), data)

    def test_no_command_prints_help(self):
        with redirect_stdout(io.StringIO()) as out:
            main.main([])
        self.assertIn("compress", out.getvalue())

    def test_invalid_workers_exit(self):
        with self.assertRaises(SystemExit):
            main.main(['compress', 'whatever', '-j', '0'])


def run_tests():
    loader = unittest.TestLoader()
    suite = unittest.TestSuite()

    suite.addTests(loader.loadTestsFromTestCase(TestFrequencyAnalysis))
    suite.addTests(loader.loadTestsFromTestCase(TestTreeBuilder))
    suite.addTests(loader.loadTestsFromTestCase(TestCodeGenerator))
    suite.addTests(loader.loadTestsFromTestCase(TestTreeSerialization))
    suite.addTests(loader.loadTestsFromTestCase(TestBitStream))
    suite.addTests(loader.loadTestsFromTestCase(TestContainerFormat))
    suite.addTests(loader.loadTestsFromTestCase(TestCodec))
    suite.addTests(loader.loadTestsFromTestCase(TestArchiver))
    suite.addTests(loader.loadTestsFromTestCase(TestCommandLine))

    runner = unittest.TextTestRunner(verbosity=2)
    result = runner.run(suite)

    return 0 if result.wasSuccessful() else 1


if __name__ == '__main__':
    sys.exit(run_tests())

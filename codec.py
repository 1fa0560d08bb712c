"""
Кодек Хаффмана: связывает частотный анализ, построение дерева,
упаковку битов и формат контейнера в compress / decompress.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Union

from bitstream import BitReader, BitWriter
from errors import CorruptPayload, MalformedTree, UnsupportedInput
from format import Container, calculate_crc32
from huffman import SHARD_SIZE, HuffmanTree, Leaf, count_frequencies


logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 1
MAX_INPUT_SIZE = (1 << 64) - 1

BytesLike = Union[bytes, bytearray, memoryview]


class HuffmanCodec:
    def __init__(self, workers: int = DEFAULT_WORKERS,
                 shard_size: int = SHARD_SIZE,
                 max_input_size: int = MAX_INPUT_SIZE):
        if workers < 1:
            raise ValueError(f"workers must be positive, got {workers}")
        if shard_size < 1:
            raise ValueError(f"shard_size must be positive, got {shard_size}")

        self.workers = workers
        self.shard_size = shard_size
        self.max_input_size = min(max_input_size, MAX_INPUT_SIZE)

    def _check_input(self, data: BytesLike) -> bytes:
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise UnsupportedInput(
                f"Expected bytes-like input, got {type(data).__name__}")

        data = bytes(data)

        if len(data) > self.max_input_size:
            raise UnsupportedInput(
                f"Input of {len(data)} bytes exceeds limit of {self.max_input_size}")

        return data

    def build_tree(self, data: bytes) -> HuffmanTree:
        frequencies = count_frequencies(data, self.workers, self.shard_size)
        return HuffmanTree.build(frequencies)

    def compress(self, data: BytesLike) -> Container:
        data = self._check_input(data)

        if not data:
            return Container.empty()

        tree = self.build_tree(data)

        table = [''] * 256
        for symbol, code in tree.codes.items():
            table[symbol] = code

        writer = BitWriter()
        writer.write_bits(''.join(map(table.__getitem__, data)))
        payload, padding = writer.to_bytes()

        tree_data, tree_bits = tree.serialize()

        logger.debug("Compressed %d bytes: tree %d bits, payload %d bits",
                     len(data), tree_bits, writer.bit_length)

        return Container(padding=padding, tree=tree_data, tree_bits=tree_bits,
                         payload=payload, original_size=len(data),
                         crc32=calculate_crc32(data))

    def decompress(self, container: Container) -> bytes:
        if container.is_empty:
            if container.payload or container.tree_bits or container.padding:
                raise CorruptPayload("Empty container carries payload or tree data")
            return b''

        tree = HuffmanTree.deserialize(container.tree, container.tree_bits)

        if tree.is_empty:
            raise MalformedTree(
                f"Container holds {container.original_size} bytes but no tree")

        output = self._decode_payload(tree, container)

        if calculate_crc32(output) != container.crc32:
            raise CorruptPayload("CRC32 mismatch")

        return output

    def _decode_payload(self, tree: HuffmanTree, container: Container) -> bytes:
        if container.payload_bits < 0:
            raise CorruptPayload(
                f"Padding of {container.padding} bits exceeds payload size")

        reader = BitReader(container.payload, padding=container.padding)
        expected = container.original_size
        output = bytearray()

        root = tree.root
        node = root

        for bit in reader.iter_bits():
            node = node.right if bit else node.left

            if node is None:
                raise CorruptPayload(
                    f"Invalid code at bit {reader.position - 1}")

            if isinstance(node, Leaf):
                output.append(node.symbol)
                if len(output) > expected:
                    raise CorruptPayload(
                        f"Payload decodes to more than {expected} bytes")
                node = root

        if node is not root:
            raise CorruptPayload("Payload ends in the middle of a code")

        if len(output) != expected:
            raise CorruptPayload(
                f"Payload decodes to {len(output)} bytes, expected {expected}")

        return bytes(output)

    def compress_bytes(self, data: BytesLike) -> bytes:
        return self.compress(data).to_bytes()

    def decompress_bytes(self, data: bytes) -> bytes:
        return self.decompress(Container.from_bytes(data))

    def analyze(self, data: BytesLike) -> 'CompressionStats':
        data = self._check_input(data)
        frequencies = count_frequencies(data, self.workers, self.shard_size)
        tree = HuffmanTree.build(frequencies)
        container = self.compress(data)
        return CompressionStats.from_tree(frequencies, tree, container)


@dataclass
class CompressionStats:
    original_size: int
    compressed_size: int
    body_size: int
    distinct_symbols: int
    average_code_length: float
    entropy: float
    codes: Dict[int, str] = field(default_factory=dict)

    @classmethod
    def from_tree(cls, frequencies: Dict[int, int], tree: HuffmanTree,
                  container: Container) -> 'CompressionStats':
        total = sum(frequencies.values())

        if total:
            average = sum(count * len(tree.codes[symbol])
                          for symbol, count in frequencies.items()) / total
            entropy = -sum((count / total) * math.log2(count / total)
                           for count in frequencies.values())
        else:
            average = 0.0
            entropy = 0.0

        return cls(original_size=total, compressed_size=len(container),
                   body_size=container.body_size,
                   distinct_symbols=len(tree.codes),
                   average_code_length=average, entropy=entropy,
                   codes=dict(tree.codes))

    @property
    def compression_ratio(self) -> float:
        return (self.compressed_size / self.original_size * 100
                if self.original_size > 0 else 0)

    def print_stats(self):
        print("Huffman Compression Statistics:")
        print(f"  Original size:       {self.original_size} bytes")
        print(f"  Compressed size:     {self.compressed_size} bytes")
        print(f"  Tree + payload:      {self.body_size} bytes")
        print(f"  Distinct symbols:    {self.distinct_symbols}")
        print(f"  Avg code length:     {self.average_code_length:.3f} bits")
        print(f"  Entropy:             {self.entropy:.3f} bits/symbol")
        print(f"  Compression ratio:   {self.compression_ratio:.1f}%")


_default_codec = HuffmanCodec()


def compress(data: BytesLike) -> Container:
    return _default_codec.compress(data)


def decompress(container: Container) -> bytes:
    return _default_codec.decompress(container)


def compress_bytes(data: BytesLike) -> bytes:
    return _default_codec.compress_bytes(data)


def decompress_bytes(data: bytes) -> bytes:
    return _default_codec.decompress_bytes(data)


def compress_text(text: str, encoding: str = 'utf-8') -> bytes:
    return _default_codec.compress_bytes(text.encode(encoding))


def decompress_text(data: bytes, encoding: str = 'utf-8') -> str:
    return _default_codec.decompress_bytes(data).decode(encoding)

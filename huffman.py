"""
Построение дерева Хаффмана для побайтового сжатия.
Частотный анализ, жадное слияние узлов через двоичную кучу,
генерация префиксных кодов и компактная сериализация формы дерева.
"""

import heapq
import itertools
import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple, Union

from bitstream import BitReader, BitStreamExhausted, BitWriter
from errors import MalformedTree


logger = logging.getLogger(__name__)

SYMBOL_BITS = 8
MAX_SYMBOLS = 1 << SYMBOL_BITS
MAX_DEPTH = MAX_SYMBOLS - 1
SHARD_SIZE = 1 << 20


@dataclass(frozen=True)
class Leaf:
    symbol: int
    weight: int = 0


@dataclass(frozen=True)
class Internal:
    """
    Внутренний узел. right равен None только у корня дерева из одного
    символа: так единственный символ всё равно получает код '0'.
    """
    weight: int
    left: 'Node'
    right: Optional['Node'] = None


Node = Union[Leaf, Internal]


def count_frequencies(data: bytes, workers: int = 1,
                      shard_size: int = SHARD_SIZE) -> Dict[int, int]:
    if workers <= 1 or len(data) <= shard_size:
        return dict(Counter(data))

    view = memoryview(data)
    shards = [view[i:i + shard_size] for i in range(0, len(data), shard_size)]

    with ThreadPoolExecutor(max_workers=workers) as pool:
        partials = list(pool.map(Counter, shards))

    logger.debug("Counted %d shards on %d workers", len(shards), workers)
    return merge_frequencies(partials)


def merge_frequencies(tables: Iterable[Dict[int, int]]) -> Dict[int, int]:
    total: Counter = Counter()
    for table in tables:
        total.update(table)
    return dict(total)


def build_tree(frequencies: Dict[int, int]) -> Optional[Node]:
    """
    Жадное слияние двух самых лёгких узлов. Листья попадают в кучу
    по возрастанию символа, у каждой записи есть порядковый номер
    вставки: при равных весах первым извлекается более ранний узел
    и он становится левым потомком. Одна и та же таблица частот
    всегда даёт одно и то же дерево.
    """
    items = sorted((symbol, weight) for symbol, weight in frequencies.items()
                   if weight > 0)
    if not items:
        return None

    for symbol, _ in items:
        if not 0 <= symbol < MAX_SYMBOLS:
            raise ValueError(f"Symbol out of byte range: {symbol}")

    order = itertools.count()
    heap = [(weight, next(order), Leaf(symbol, weight)) for symbol, weight in items]
    heapq.heapify(heap)

    if len(heap) == 1:
        weight, _, leaf = heap[0]
        return Internal(weight, leaf)

    while len(heap) > 1:
        left_weight, _, left = heapq.heappop(heap)
        right_weight, _, right = heapq.heappop(heap)

        weight = left_weight + right_weight
        heapq.heappush(heap, (weight, next(order), Internal(weight, left, right)))

    return heap[0][2]


def generate_codes(root: Optional[Node]) -> Dict[int, str]:
    codes: Dict[int, str] = {}

    if root is None:
        return codes

    if isinstance(root, Leaf):
        root = Internal(root.weight, root)

    def traverse(node: Node, code: str):
        if isinstance(node, Leaf):
            codes[node.symbol] = code
            return

        traverse(node.left, code + '0')
        if node.right is not None:
            traverse(node.right, code + '1')

    traverse(root, '')
    return codes


def serialize_tree(root: Optional[Node], writer: BitWriter):
    """Прямой обход: лист -> 1 + 8 бит символа, внутренний узел -> 0 + левое + правое."""
    if root is None:
        return

    def visit(node: Node, is_root: bool):
        if isinstance(node, Leaf):
            writer.write_bit(1)
            writer.write_uint(node.symbol, SYMBOL_BITS)
            return

        writer.write_bit(0)
        visit(node.left, False)

        if node.right is not None:
            visit(node.right, False)
        elif not is_root:
            raise ValueError("Only the root may have a single child")

    visit(root, True)


def deserialize_tree(reader: BitReader) -> Optional[Node]:
    """
    Восстанавливает дерево из ровно reader.bit_length битов.
    Веса восстановленных узлов равны нулю: для декодирования нужна
    только форма дерева.
    """
    if reader.bit_length == 0:
        return None

    seen = set()

    def read_node(depth: int, is_root: bool) -> Node:
        if depth > MAX_DEPTH:
            raise MalformedTree(f"Tree deeper than {MAX_DEPTH} levels")

        try:
            tag = reader.read_bit()
        except BitStreamExhausted:
            raise MalformedTree(
                f"Tree section ends before a node at bit {reader.position}") from None

        if tag:
            try:
                symbol = reader.read_uint(SYMBOL_BITS)
            except BitStreamExhausted:
                raise MalformedTree(
                    f"Leaf at bit {reader.position - 1} is missing its symbol") from None

            if symbol in seen:
                raise MalformedTree(f"Symbol {symbol} appears twice in tree")
            seen.add(symbol)
            return Leaf(symbol)

        left = read_node(depth + 1, False)

        # Корень-обёртка единственного символа: секция кончается сразу после листа
        if is_root and isinstance(left, Leaf) and reader.exhausted:
            return Internal(0, left)

        right = read_node(depth + 1, False)
        return Internal(0, left, right)

    root = read_node(0, True)

    if isinstance(root, Leaf):
        raise MalformedTree("Tree root must be an internal node")

    if not reader.exhausted:
        raise MalformedTree(f"{reader.remaining} trailing bits after tree")

    return root


class HuffmanTree:
    def __init__(self, root: Optional[Node] = None):
        self.root = root
        self.codes: Dict[int, str] = generate_codes(root)

    @classmethod
    def build(cls, frequencies: Dict[int, int]) -> 'HuffmanTree':
        tree = cls(build_tree(frequencies))
        if tree.codes:
            logger.debug("Built tree: %d symbols, longest code %d bits",
                         len(tree.codes), max(len(c) for c in tree.codes.values()))
        return tree

    @property
    def is_empty(self) -> bool:
        return self.root is None

    def serialize(self) -> Tuple[bytes, int]:
        """Возвращает байты секции дерева и её длину в битах."""
        writer = BitWriter()
        serialize_tree(self.root, writer)
        data, _ = writer.to_bytes()
        return data, writer.bit_length

    @classmethod
    def deserialize(cls, data: bytes, bit_length: int) -> 'HuffmanTree':
        if bit_length > len(data) * 8:
            raise MalformedTree(
                f"Tree needs {bit_length} bits, section has {len(data) * 8}")
        return cls(deserialize_tree(BitReader(data, bit_length=bit_length)))

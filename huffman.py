"""
Реализует дерево Хаффмана: подсчёт частот, построение дерева,
вывод кодов и побитовая (де)сериализация формы дерева.
"""

import heapq
from collections.abc import Mapping
from typing import Dict, Iterator, List, Optional

from bitio import BitReader, BitWriter
from format import StructuralError


BITS_PER_WORD = 8
ALPH_SIZE = 1 << BITS_PER_WORD
PSEUDO_EOF = ALPH_SIZE
SYMBOL_BITS = BITS_PER_WORD + 1


class BitCode:
    """Variable-length code kept as a bit string, so leading zeros survive."""

    __slots__ = ('bits',)

    def __init__(self, bits: str = ''):
        self.bits = bits

    def append(self, bit: int) -> 'BitCode':
        return BitCode(self.bits + ('1' if bit else '0'))

    @property
    def value(self) -> int:
        return int(self.bits, 2) if self.bits else 0

    def is_prefix_of(self, other: 'BitCode') -> bool:
        return other.bits.startswith(self.bits)

    def __len__(self):
        return len(self.bits)

    def __iter__(self) -> Iterator[int]:
        return (int(bit) for bit in self.bits)

    def __eq__(self, other):
        if not isinstance(other, BitCode):
            return NotImplemented
        return self.bits == other.bits

    def __hash__(self):
        return hash(self.bits)

    def __str__(self):
        return self.bits

    def __repr__(self):
        return f"BitCode('{self.bits}')"


class HuffmanNode:
    def __init__(self, symbol: Optional[int] = None, weight: int = 0,
                 left: Optional['HuffmanNode'] = None,
                 right: Optional['HuffmanNode'] = None):
        self.symbol = symbol
        self.weight = weight
        self.left = left
        self.right = right

    def is_leaf(self) -> bool:
        return self.left is None and self.right is None

    def __repr__(self):
        if self.is_leaf():
            return f"Leaf({self.symbol}, {self.weight})"
        return f"Node({self.weight}, {self.left!r}, {self.right!r})"


class HuffmanTree:
    def __init__(self, root: Optional[HuffmanNode] = None):
        self.root = root

    def build(self, frequencies) -> 'HuffmanTree':
        """Build the tree from a 257-entry count list or a symbol->count mapping.

        Equal weights are merged in insertion order, so the same table
        always yields the same tree.
        """
        if isinstance(frequencies, Mapping):
            items = sorted(frequencies.items())
        else:
            items = enumerate(frequencies)

        heap = []
        sequence = 0
        for symbol, weight in items:
            if weight > 0:
                heap.append((weight, sequence, HuffmanNode(symbol=symbol, weight=weight)))
                sequence += 1

        if not heap:
            raise ValueError("cannot build a tree from an empty frequency table")

        heapq.heapify(heap)

        while len(heap) > 1:
            left_weight, _, left = heapq.heappop(heap)
            right_weight, _, right = heapq.heappop(heap)

            weight = left_weight + right_weight
            parent = HuffmanNode(weight=weight, left=left, right=right)
            heapq.heappush(heap, (weight, sequence, parent))
            sequence += 1

        self.root = heap[0][2]
        return self

    def codes(self) -> Dict[int, BitCode]:
        codes: Dict[int, BitCode] = {}

        if self.root is None:
            return codes

        # lone leaf still needs one bit per symbol
        if self.root.is_leaf():
            codes[self.root.symbol] = BitCode('0')
            return codes

        def traverse(node: HuffmanNode, code: BitCode):
            if node.is_leaf():
                codes[node.symbol] = code
                return

            traverse(node.left, code.append(0))
            traverse(node.right, code.append(1))

        traverse(self.root, BitCode())
        return codes

    def leaves(self) -> Iterator[HuffmanNode]:
        stack = [self.root] if self.root is not None else []

        while stack:
            node = stack.pop()
            if node.is_leaf():
                yield node
            else:
                stack.append(node.right)
                stack.append(node.left)

    def symbols(self) -> List[int]:
        return [leaf.symbol for leaf in self.leaves()]

    def write_header(self, writer: BitWriter):
        def write(node: HuffmanNode):
            if node.is_leaf():
                writer.write_bits(1, 1)
                writer.write_bits(SYMBOL_BITS, node.symbol)
                return

            writer.write_bits(1, 0)
            write(node.left)
            write(node.right)

        write(self.root)

    @staticmethod
    def read_header(reader: BitReader) -> 'HuffmanTree':
        def read(depth: int) -> HuffmanNode:
            if depth > ALPH_SIZE:
                raise StructuralError(
                    f"tree header nests deeper than {ALPH_SIZE} levels at bit {reader.bits_read}")

            bit = reader.read_bits(1)
            if bit is None:
                raise StructuralError(f"tree header truncated at bit {reader.bits_read}")

            if bit == 0:
                left = read(depth + 1)
                right = read(depth + 1)
                return HuffmanNode(left=left, right=right)

            symbol = reader.read_bits(SYMBOL_BITS)
            if symbol is None:
                raise StructuralError(
                    f"tree header truncated inside a leaf symbol at bit {reader.bits_read}")
            if symbol > PSEUDO_EOF:
                raise StructuralError(
                    f"tree header leaf symbol {symbol} out of range at bit {reader.bits_read}")

            return HuffmanNode(symbol=symbol)

        return HuffmanTree(read(0))


def count_frequencies(reader: BitReader) -> List[int]:
    counts = [0] * (ALPH_SIZE + 1)

    word = reader.read_bits(BITS_PER_WORD)
    while word is not None:
        counts[word] += 1
        word = reader.read_bits(BITS_PER_WORD)

    counts[PSEUDO_EOF] = 1
    return counts

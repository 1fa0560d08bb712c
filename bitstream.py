"""
Побитовая запись и чтение.
BitWriter упаковывает биты в байты (старший бит первым) и дополняет
последний байт нулями; BitReader читает биты обратно, учитывая
логическую длину потока без битов дополнения.
"""

from typing import Iterator, List, Optional, Tuple


class BitStreamExhausted(EOFError):
    pass


class BitWriter:
    def __init__(self):
        self.chunks: List[str] = []
        self.bit_length = 0

    def write_bit(self, bit: int):
        self.chunks.append('1' if bit else '0')
        self.bit_length += 1

    def write_bits(self, code: str):
        self.chunks.append(code)
        self.bit_length += len(code)

    def write_uint(self, value: int, width: int):
        if value < 0 or value >= (1 << width):
            raise ValueError(f"Value {value} does not fit in {width} bits")
        self.write_bits(format(value, f'0{width}b'))

    def to_bytes(self) -> Tuple[bytes, int]:
        """Возвращает упакованные байты и число битов дополнения (0-7)."""
        bits = ''.join(self.chunks)
        if not bits:
            return b'', 0

        padding = (8 - len(bits) % 8) % 8
        bits += '0' * padding

        return int(bits, 2).to_bytes(len(bits) // 8, 'big'), padding


class BitReader:
    def __init__(self, data: bytes, padding: int = 0,
                 bit_length: Optional[int] = None):
        self.data = bytes(data)
        total = len(self.data) * 8

        if bit_length is None:
            bit_length = total - padding

        if bit_length < 0 or bit_length > total:
            raise ValueError(f"Bit length {bit_length} out of range for {len(self.data)} bytes")

        self.bit_length = bit_length
        self.position = 0

    @property
    def remaining(self) -> int:
        return self.bit_length - self.position

    @property
    def exhausted(self) -> bool:
        return self.position >= self.bit_length

    def peek_bit(self) -> int:
        pos = self.position
        if pos >= self.bit_length:
            raise BitStreamExhausted(f"No bits left at position {pos}")
        return (self.data[pos >> 3] >> (7 - (pos & 7))) & 1

    def read_bit(self) -> int:
        bit = self.peek_bit()
        self.position += 1
        return bit

    def read_uint(self, width: int) -> int:
        if self.remaining < width:
            raise BitStreamExhausted(
                f"Need {width} bits, only {self.remaining} left")

        value = 0
        for _ in range(width):
            value = (value << 1) | self.read_bit()
        return value

    def iter_bits(self) -> Iterator[int]:
        # Позиция обновляется до yield, чтобы потребитель видел её актуальной
        data = self.data
        end = self.bit_length
        pos = self.position

        while pos < end:
            bit = (data[pos >> 3] >> (7 - (pos & 7))) & 1
            pos += 1
            self.position = pos
            yield bit

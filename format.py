"""
Определяет структуру контейнера сжатых данных и методы чтения/записи.

Заголовок (20 байт, little-endian):
    magic        4s  b'HUFF'
    version      B   версия формата
    padding      B   биты дополнения в последнем байте данных (0-7)
    original     Q   длина исходных данных в байтах
    crc32        I   CRC32 исходных данных
    tree_bits    H   длина секции дерева в битах
Далее секция дерева (выровнена по байту) и упакованные данные до конца.
"""

import struct
import zlib
from dataclasses import dataclass

from errors import ContainerError, MalformedTree


MAGIC = b'HUFF'
FORMAT_VERSION = 1
HEADER_FORMAT = '<4sBBQIH'
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)


@dataclass(frozen=True)
class ContainerHeader:
    padding: int
    original_size: int
    crc32: int
    tree_bits: int
    version: int = FORMAT_VERSION

    @property
    def tree_size(self) -> int:
        return (self.tree_bits + 7) // 8

    def serialize(self) -> bytes:
        return struct.pack(HEADER_FORMAT, MAGIC, self.version, self.padding,
                           self.original_size, self.crc32, self.tree_bits)

    @staticmethod
    def deserialize(data: bytes) -> 'ContainerHeader':
        if len(data) < HEADER_SIZE:
            raise ContainerError("Invalid container header")

        magic, version, padding, original_size, crc32, tree_bits = \
            struct.unpack_from(HEADER_FORMAT, data, 0)

        if magic != MAGIC:
            raise ContainerError("Invalid container magic")

        if version != FORMAT_VERSION:
            raise ContainerError(f"Unsupported version: {version}")

        if padding > 7:
            raise ContainerError(f"Invalid padding: {padding}")

        return ContainerHeader(padding=padding, original_size=original_size,
                               crc32=crc32, tree_bits=tree_bits, version=version)


@dataclass(frozen=True)
class Container:
    padding: int
    tree: bytes
    tree_bits: int
    payload: bytes
    original_size: int
    crc32: int

    @classmethod
    def empty(cls) -> 'Container':
        return cls(padding=0, tree=b'', tree_bits=0, payload=b'',
                   original_size=0, crc32=0)

    @property
    def is_empty(self) -> bool:
        return self.original_size == 0

    @property
    def header(self) -> ContainerHeader:
        return ContainerHeader(padding=self.padding,
                               original_size=self.original_size,
                               crc32=self.crc32, tree_bits=self.tree_bits)

    @property
    def body_size(self) -> int:
        return len(self.tree) + len(self.payload)

    @property
    def payload_bits(self) -> int:
        return len(self.payload) * 8 - self.padding

    def to_bytes(self) -> bytes:
        return self.header.serialize() + self.tree + self.payload

    def __len__(self) -> int:
        return HEADER_SIZE + self.body_size

    @staticmethod
    def from_bytes(data: bytes) -> 'Container':
        header = ContainerHeader.deserialize(data)
        pos = HEADER_SIZE

        if pos + header.tree_size > len(data):
            raise MalformedTree("Corrupted container: cannot read tree section")

        tree = bytes(data[pos:pos + header.tree_size])
        pos += header.tree_size

        return Container(padding=header.padding, tree=tree,
                         tree_bits=header.tree_bits, payload=bytes(data[pos:]),
                         original_size=header.original_size, crc32=header.crc32)


def calculate_crc32(data: bytes) -> int:
    return zlib.crc32(data) & 0xffffffff

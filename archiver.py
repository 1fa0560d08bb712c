"""
Сжатие и разжатие отдельных файлов в контейнеры .huff.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional

from codec import HuffmanCodec
from format import Container, HEADER_SIZE


logger = logging.getLogger(__name__)

HUFF_SUFFIX = '.huff'
OUTPUT_SUFFIX = '.out'


class HuffmanArchiver:
    def __init__(self, codec: Optional[HuffmanCodec] = None):
        self.codec = codec or HuffmanCodec()

    @staticmethod
    def compressed_name(file_path: str) -> str:
        return Path(file_path).name + HUFF_SUFFIX

    @staticmethod
    def decompressed_name(file_path: str) -> str:
        name = Path(file_path).name
        if name.endswith(HUFF_SUFFIX) and len(name) > len(HUFF_SUFFIX):
            return name[:-len(HUFF_SUFFIX)]
        return name + OUTPUT_SUFFIX

    @staticmethod
    def _output_path(file_path: str, name: str, output_dir: Optional[str]) -> str:
        directory = output_dir if output_dir is not None else os.path.dirname(file_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        return os.path.join(directory, name)

    def compress_file(self, file_path: str, output_dir: Optional[str] = None) -> str:
        with open(file_path, 'rb') as f:
            data = f.read()

        blob = self.codec.compress_bytes(data)
        output_path = self._output_path(file_path, self.compressed_name(file_path), output_dir)

        with open(output_path, 'wb') as f:
            f.write(blob)

        logger.debug("%s: %d -> %d bytes", file_path, len(data), len(blob))
        return output_path

    def decompress_file(self, file_path: str, output_dir: Optional[str] = None) -> str:
        with open(file_path, 'rb') as f:
            blob = f.read()

        data = self.codec.decompress_bytes(blob)
        output_path = self._output_path(file_path, self.decompressed_name(file_path), output_dir)

        with open(output_path, 'wb') as f:
            f.write(data)

        return output_path

    def compress_files(self, file_paths: List[str], output_dir: Optional[str] = None) -> List[str]:
        outputs = []
        total_original = 0
        total_compressed = 0

        for file_path in file_paths:
            if not os.path.isfile(file_path):
                print(f"Warning: {file_path} not found, skipping")
                continue

            print(f"Compressing {file_path}...", end=" ")
            output_path = self.compress_file(file_path, output_dir)
            outputs.append(output_path)

            original_size = os.path.getsize(file_path)
            compressed_size = os.path.getsize(output_path)
            total_original += original_size
            total_compressed += compressed_size

            ratio = (compressed_size / original_size * 100) if original_size > 0 else 0
            print(f"OK ({ratio:.1f}%)")

        if not outputs:
            print("No files to compress")
            return outputs

        total_ratio = (total_compressed / total_original * 100) if total_original > 0 else 0
        print(f"Total: {total_original} -> {total_compressed} bytes ({total_ratio:.1f}%)")

        return outputs

    def decompress_files(self, file_paths: List[str], output_dir: Optional[str] = None) -> List[str]:
        outputs = []

        for file_path in file_paths:
            if not os.path.isfile(file_path):
                print(f"Warning: {file_path} not found, skipping")
                continue

            print(f"Decompressing {file_path}...", end=" ")
            try:
                outputs.append(self.decompress_file(file_path, output_dir))
            except ValueError as e:
                print(f"FAILED ({e})")
                continue
            print("OK")

        return outputs

    def show_info(self, file_path: str):
        if not os.path.isfile(file_path):
            print(f"Error: {file_path} not found")
            return

        with open(file_path, 'rb') as f:
            blob = f.read()

        try:
            container = Container.from_bytes(blob)
        except ValueError as e:
            print(f"Error reading container: {e}")
            return

        header = container.header
        print(f"{'Field':<20} {'Value':>16}")
        print("-" * 37)
        print(f"{'Version':<20} {header.version:>16}")
        print(f"{'Original size':<20} {header.original_size:>16}")
        print(f"{'CRC32':<20} {header.crc32:>16x}")
        print(f"{'Header bytes':<20} {HEADER_SIZE:>16}")
        print(f"{'Tree bits':<20} {header.tree_bits:>16}")
        print(f"{'Payload bytes':<20} {len(container.payload):>16}")
        print(f"{'Padding bits':<20} {header.padding:>16}")
        print("-" * 37)

        ratio = (len(blob) / header.original_size * 100) if header.original_size > 0 else 0
        print(f"{'Ratio':<20} {ratio:>15.1f}%")

    def show_codes(self, file_path: str):
        if not os.path.isfile(file_path):
            print(f"Error: {file_path} not found")
            return

        with open(file_path, 'rb') as f:
            data = f.read()

        stats = self.codec.analyze(data)
        stats.print_stats()

        if not stats.codes:
            return

        print()
        print(f"{'Symbol':<10} Code")
        print("-" * 40)
        for symbol, code in sorted(stats.codes.items(), key=lambda item: (len(item[1]), item[0])):
            label = repr(chr(symbol)) if 32 <= symbol < 127 else f"0x{symbol:02x}"
            print(f"{label:<10} {code}")

"""
Командная строка для кодека Хаффмана.
"""

import argparse
import logging
import sys

from archiver import HuffmanArchiver
from codec import DEFAULT_WORKERS, HuffmanCodec


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Huffman file compressor',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  huffpack compress file1.txt file2.bin -o ./packed
  huffpack decompress ./packed/file1.txt.huff -o ./restored
  huffpack info ./packed/file1.txt.huff
  huffpack codes file1.txt
        """
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')

    subparsers = parser.add_subparsers(dest='command', help='Command')

    compress_parser = subparsers.add_parser('compress', help='Compress files to .huff')
    compress_parser.add_argument('files', nargs='+', help='Files to compress')
    compress_parser.add_argument('-o', '--output', default=None, help='Output directory')
    compress_parser.add_argument('-j', '--workers', type=int, default=DEFAULT_WORKERS,
                                 help='Threads for frequency counting')

    decompress_parser = subparsers.add_parser('decompress', help='Restore .huff files')
    decompress_parser.add_argument('files', nargs='+', help='Files to decompress')
    decompress_parser.add_argument('-o', '--output', default=None, help='Output directory')

    info_parser = subparsers.add_parser('info', help='Show container header')
    info_parser.add_argument('archive', help='Container path')

    codes_parser = subparsers.add_parser('codes', help='Show code table for a file')
    codes_parser.add_argument('file', help='Input file')

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    if not args.command:
        parser.print_help()
        return

    try:
        codec = HuffmanCodec(workers=getattr(args, 'workers', DEFAULT_WORKERS))
        archiver = HuffmanArchiver(codec)

        if args.command == 'compress':
            archiver.compress_files(args.files, args.output)

        elif args.command == 'decompress':
            archiver.decompress_files(args.files, args.output)

        elif args.command == 'info':
            archiver.show_info(args.archive)

        elif args.command == 'codes':
            archiver.show_codes(args.file)

    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()

"""
Командная строка для компрессора Хаффмана.
"""

import argparse
import logging
import sys

from compressor import DEBUG_HIGH
from fileops import FileCompressor


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Huffman file compressor (tree header format)',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py compress file1.txt file2.txt
  python main.py compress file1.txt -o file1.hf
  python main.py decompress file1.txt.hf -d ./output
  python main.py verify file1.txt
        """
    )
    parser.add_argument('--debug', type=int, default=0,
                        help=f'Debug level (1 = bit totals, {DEBUG_HIGH} = tree and codes)')

    subparsers = parser.add_subparsers(dest='command', help='Command')

    compress_parser = subparsers.add_parser('compress', help='Compress files')
    compress_parser.add_argument('files', nargs='+', help='Files to compress')
    compress_parser.add_argument('-o', '--output', help='Output path (single file only)')
    compress_parser.add_argument('-d', '--dir', help='Output directory')

    decompress_parser = subparsers.add_parser('decompress', help='Decompress files')
    decompress_parser.add_argument('files', nargs='+', help='Files to decompress')
    decompress_parser.add_argument('-o', '--output', help='Output path (single file only)')
    decompress_parser.add_argument('-d', '--dir', help='Output directory')

    verify_parser = subparsers.add_parser('verify', help='Check that files survive a round trip')
    verify_parser.add_argument('files', nargs='+', help='Files to check')

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return

    logging.basicConfig(
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
        level=logging.DEBUG if args.debug else logging.WARNING
    )

    if getattr(args, 'output', None) and len(args.files) > 1:
        parser.error('--output accepts a single input file')

    processor = FileCompressor(debug=args.debug)

    try:
        if args.command == 'compress':
            if args.output:
                report = processor.compress_file(args.files[0], args.output)
                print(f"{report.source} -> {report.target} ({report.ratio:.1f}%)")
            else:
                processor.compress_files(args.files, args.dir)

        elif args.command == 'decompress':
            if args.output:
                report = processor.decompress_file(args.files[0], args.output)
                print(f"{report.source} -> {report.target}")
            else:
                processor.decompress_files(args.files, args.dir)

        elif args.command == 'verify':
            failed = [path for path in args.files if not processor.verify_file(path)]
            for path in args.files:
                print(f"{path}: {'FAILED' if path in failed else 'OK'}")
            if failed:
                sys.exit(1)

    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()

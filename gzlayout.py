#!/usr/bin/env python3
"""
List the byte ranges of a gzip member (read from a file or stdin).

Each line is a two letter region tag followed by its first and last byte
offset (inclusive): HD header, XF extra field, FN original filename,
FC comment, HC header CRC, PL compressed payload, FT footer. An empty
payload is shown with start == end == the last byte of the header.
"""

import argparse
import logging
import sys

import gzip_envelope


def layout(gz: gzip_envelope.GzipFile) -> list[tuple[str, int, int]]:
    header = gz.header
    rows = [(tag, start, end - 1) for tag, start, end in header.regions]

    hd_end = header.size - 1
    if len(gz.payload):
        pl_start = hd_end + 1
        pl_end = hd_end + len(gz.payload)
    else:
        pl_start = pl_end = hd_end
    rows.append(('PL', pl_start, pl_end))

    ft_start = header.size + len(gz.payload)
    rows.append(('FT', ft_start, ft_start + gzip_envelope.FOOTER_SIZE - 1))
    return rows


def format_rows(rows) -> str:
    return ''.join(f'{tag}{start:>8}{end:>8}\n' for tag, start, end in rows)


def main(argv=None):
    p = argparse.ArgumentParser(description=__doc__.strip().split('\n')[0])
    p.add_argument('path', nargs='?', help='gzip file, stdin when omitted')
    p.add_argument('--encoding', default='utf-8')
    p.add_argument('-v', '--verbose', action='store_true')
    args = p.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    if args.path is None:
        data = sys.stdin.buffer.read()
    else:
        with open(args.path, 'rb') as f:
            data = f.read()

    try:
        gz = gzip_envelope.decode_file(data, args.encoding)
    except gzip_envelope.GzipError as exc:
        sys.exit(f'{args.path or "<stdin>"}: {exc}')

    sys.stdout.write(format_rows(layout(gz)))


if __name__ == '__main__':
    main()

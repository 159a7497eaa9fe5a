#!/usr/bin/env python3
"""
Survey gzip envelopes written by different producers, grouped by header traits

Sample members come from Python's gzip and zlib modules, optionally a gzip
command, and any .gz files given on the command line. Each is decoded and
the samples are grouped by what their headers say: operating system, extra
flags, and whether a file name and timestamp were recorded.

$ ./gzip_examples.py --gzip-cmd gzip /var/log/*.gz
{
  "groups": {
    "UNIX xfl=MAXIMUM_COMPRESSION name mtime": [
      "cmd-best-named",
      ...
"""

import argparse
import gzip
import hashlib
import io
import json
import logging
import pathlib
import subprocess
import sys
import zlib

import gzip_envelope

logger = logging.getLogger(__name__)

SAMPLE_DATA = b'a' * 1000
SAMPLE_NAME = 'sample.txt'
SAMPLE_MTIME = 1_000_000_000
LEVELS = {'fastest': 1, 'default': 6, 'best': 9}


def python_samples(data: bytes = SAMPLE_DATA) -> dict[str, bytes]:
    samples = {}
    for variant, level in LEVELS.items():
        samples[f'py-gzip-{variant}'] = gzip.compress(data, compresslevel=level, mtime=0)

        f = io.BytesIO()
        with gzip.GzipFile(SAMPLE_NAME, 'wb', level, f, SAMPLE_MTIME) as gzf:
            gzf.write(data)
        samples[f'py-gzipfile-{variant}-named'] = f.getvalue()

        # wbits 16 + 15 -> gzip container written by zlib itself
        samples[f'py-zlib-{variant}'] = zlib.compress(data, level=level, wbits=31)
    return samples


def cmd_samples(cmd: str, data: bytes = SAMPLE_DATA) -> dict[str, bytes]:
    samples = {}
    for variant, level in LEVELS.items():
        for suffix, name_args in (('anonymous', ['--no-name']), ('named', ['--name'])):
            result = subprocess.run(
                [cmd, f'-{level}', *name_args],
                input=data,
                capture_output=True,
                check=True,
            )
            samples[f'cmd-{variant}-{suffix}'] = result.stdout
    return samples


def file_samples(paths: list[pathlib.Path]) -> dict[str, bytes]:
    return {str(path): path.read_bytes() for path in paths}


def traits(header: gzip_envelope.GzipHeader) -> str:
    parts = [
        header.operating_system.name,
        f'xfl={header.extra_flags.name}',
    ]
    if header.original_filename is not None:
        parts.append('name')
    if header.modified is not None:
        parts.append('mtime')
    if header.extra_field is not None:
        parts.append('extra=' + ','.join(sf.id.decode('latin-1') for sf in header.extra_field))
    if header.file_comment is not None:
        parts.append('comment')
    if header.header_crc is not None:
        parts.append('hcrc')
    return ' '.join(parts)


def survey(samples: dict[str, bytes]) -> dict:
    groups: dict[str, list[str]] = {}
    failures = {}
    members = {}
    for name, data in samples.items():
        try:
            gz = gzip_envelope.decode_file(data)
        except gzip_envelope.GzipError as exc:
            logger.warning('%s: %s', name, exc)
            failures[name] = f'{type(exc).__name__}: {exc}'
            continue
        groups.setdefault(traits(gz.header), []).append(name)
        members[name] = {
            'sha256': hashlib.sha256(data).hexdigest(),
            'header_size': gz.header.size,
            'payload_size': len(gz.payload),
            'input_size': gz.footer.input_size,
        }
    return {
        'groups': {key: sorted(names) for key, names in sorted(groups.items())},
        'members': members,
        'failures': failures,
    }


def main(argv=None):
    parser = argparse.ArgumentParser(
        description=__doc__.strip().split('\n')[0],
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument('paths', nargs='*', type=pathlib.Path, metavar='PATH',
                        help='Existing gzip files to include')
    parser.add_argument('--gzip-cmd', metavar='CMD',
                        help='Also sample this gzip command')
    parser.add_argument('--output', type=pathlib.Path, metavar='PATH',
                        help='Write the summary here instead of stdout')
    parser.add_argument('-v', '--verbose', action='store_true')
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    samples = python_samples()
    if args.gzip_cmd:
        samples |= cmd_samples(args.gzip_cmd)
    samples |= file_samples(args.paths)

    summary = json.dumps(survey(samples), indent=2, sort_keys=True) + '\n'
    if args.output is None:
        sys.stdout.write(summary)
    else:
        args.output.write_text(summary)


if __name__ == '__main__':
    main()

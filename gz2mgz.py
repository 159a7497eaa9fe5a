#!/usr/bin/env python3

# /// script
# requires-python = ">=3.10"
# dependencies = [
#     "multiformats",
# ]
# ///
"""
Convert a gzip file (read from stdin) to an mgz record (written to stdout).

Mgz is a prototype metadata format for gzip members. It preserves the
header and footer bytes verbatim, but replaces the compressed payload with
a reference to the same data held and de-duplicated in Content Addressable
Storage (CAS).

Given an mgz and the CAS one should be able to reconstitute a gzip file
that is bit-for-bit identical to the original, header + payload + footer.
The decoded header and footer are included for readers, they are not
needed to reconstitute.
"""

import argparse
import hashlib
import json
import logging
import os
import sys

import multiformats

import gzip_envelope

logger = logging.getLogger(__name__)

MGZ_FORMAT = 'mgz'
MGZ_VERSION = 1
CHUNK_SIZE = 64 * 1024


def payload_cid(payload: memoryview, blobf=None) -> multiformats.CID:
    """Content identifier of a payload, an IPFS CIDv1 of the raw bytes.

    When ``blobf`` is given the payload is also written to it.
    """
    hasher = hashlib.sha256()
    for i in range(0, len(payload), CHUNK_SIZE):
        chunk = payload[i:i + CHUNK_SIZE]
        if blobf is not None:
            blobf.write(chunk)
        hasher.update(chunk)
    mhash = multiformats.multihash.wrap(hasher.digest(), 'sha2-256')
    return multiformats.CID('base32', 1, 'raw', mhash)


def mgz_record(data: bytes, encoding: str = 'utf-8', blobf=None) -> dict:
    gz = gzip_envelope.decode_file(data, encoding)
    header_size = gz.header.size
    footer_start = len(data) - gzip_envelope.FOOTER_SIZE
    cid = payload_cid(gz.payload, blobf)
    logger.debug('payload of %d byte(s) is %s', len(gz.payload), cid)
    return {
        'format': MGZ_FORMAT,
        'version': MGZ_VERSION,
        'header_raw': bytes(data[:header_size]).hex(),
        'header': gz.header.to_dict(),
        'payload': str(cid),
        'payload_size': len(gz.payload),
        'footer_raw': bytes(data[footer_start:]).hex(),
        'footer': gz.footer.to_dict(),
    }


def main(argv=None):
    p = argparse.ArgumentParser(description=__doc__.strip().split('\n')[0])
    p.add_argument('--encoding', default='utf-8')
    p.add_argument('-v', '--verbose', action='store_true')
    args = p.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    data = sys.stdin.buffer.read()
    with open(os.devnull, 'wb') as blobf:  # FIXME Actually use a CAS
        try:
            record = mgz_record(data, args.encoding, blobf)
        except gzip_envelope.GzipError as exc:
            sys.exit(f'<stdin>: {exc}')

    json.dump(record, sys.stdout, indent=2, sort_keys=True)
    sys.stdout.write('\n')


if __name__ == '__main__':
    main()

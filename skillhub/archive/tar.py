"""Minimal POSIX ustar writer.

Layout per entry: one 512-byte header block, the file bytes, zero padding up
to the next 512-byte boundary. The archive ends with two zero blocks.
Output depends only on the file order, the file contents and ``mtime``.
"""

import time
from pathlib import Path

from ..errors import PathTooLongError

BLOCK_SIZE = 512
FILE_MODE = 0o644
REGULAR_FILE = b"0"
USTAR_MAGIC = b"ustar\x00"
USTAR_VERSION = b"00"

NAME_FIELD = (0, 100)
MODE_FIELD = (100, 8)
UID_FIELD = (108, 8)
GID_FIELD = (116, 8)
SIZE_FIELD = (124, 12)
MTIME_FIELD = (136, 12)
CHKSUM_FIELD = (148, 8)
TYPEFLAG_OFFSET = 156
MAGIC_FIELD = (257, 6)
VERSION_FIELD = (263, 2)
PREFIX_FIELD = (345, 155)


def _write_bytes(header: bytearray, value: bytes, field: tuple[int, int]) -> None:
    offset, length = field
    chunk = value[:length]
    header[offset:offset + len(chunk)] = chunk


def _write_octal(header: bytearray, value: int, field: tuple[int, int]) -> None:
    # length-1 zero-padded octal digits followed by NUL
    offset, length = field
    digits = format(value, "o").rjust(length - 1, "0")
    if len(digits) > length - 1:
        raise ValueError(f"Value {value} does not fit a {length}-byte octal field")
    header[offset:offset + length] = digits.encode("ascii") + b"\x00"


def split_entry_name(name: str) -> tuple[bytes, bytes]:
    """Split a path into ustar (prefix, name) fields.

    Raises:
        PathTooLongError: If the path fits neither field layout.
    """
    encoded = name.encode("utf-8")
    if len(encoded) <= NAME_FIELD[1]:
        return b"", encoded

    # Split at the right-most '/' that leaves both halves within bounds
    for index in range(len(encoded) - 1, 0, -1):
        if encoded[index:index + 1] != b"/":
            continue
        prefix, rest = encoded[:index], encoded[index + 1:]
        if len(prefix) <= PREFIX_FIELD[1] and 0 < len(rest) <= NAME_FIELD[1]:
            return prefix, rest
    raise PathTooLongError(f"File path too long for tar: {name}")


def header_checksum(header: bytes) -> int:
    """Unsigned byte sum with the checksum field counted as ASCII spaces."""
    offset, length = CHKSUM_FIELD
    return sum(header[:offset]) + 0x20 * length + sum(header[offset + length:])


def build_header(name: str, size: int, mtime: int) -> bytes:
    """Build the 512-byte ustar header for a regular file."""
    prefix, short_name = split_entry_name(name)
    header = bytearray(BLOCK_SIZE)

    _write_bytes(header, short_name, NAME_FIELD)
    _write_octal(header, FILE_MODE, MODE_FIELD)
    _write_octal(header, 0, UID_FIELD)
    _write_octal(header, 0, GID_FIELD)
    _write_octal(header, size, SIZE_FIELD)
    _write_octal(header, mtime, MTIME_FIELD)
    header[TYPEFLAG_OFFSET:TYPEFLAG_OFFSET + 1] = REGULAR_FILE
    _write_bytes(header, USTAR_MAGIC, MAGIC_FIELD)
    _write_bytes(header, USTAR_VERSION, VERSION_FIELD)
    _write_bytes(header, prefix, PREFIX_FIELD)

    _write_octal(header, header_checksum(header), CHKSUM_FIELD)
    return bytes(header)


def build_tarball(files: list[str], base_dir: Path, mtime: int | None = None) -> bytes:
    """
    Pack files (relative to base_dir) into a ustar archive.

    Args:
        files: Normalized relative paths, already checked by collect_files().
        base_dir: Skill directory the paths are relative to.
        mtime: Modification time written to every header. Defaults to now;
            pass a fixed value for byte-reproducible output.

    Returns:
        The archive bytes.
    """
    if mtime is None:
        mtime = int(time.time())

    blocks: list[bytes] = []
    for file_path in files:
        data = (base_dir / file_path).read_bytes()
        blocks.append(build_header(file_path, len(data), mtime))
        blocks.append(data)
        remainder = len(data) % BLOCK_SIZE
        if remainder:
            blocks.append(b"\x00" * (BLOCK_SIZE - remainder))

    blocks.append(b"\x00" * (BLOCK_SIZE * 2))
    return b"".join(blocks)

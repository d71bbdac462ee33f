"""Family-name extraction from TrueType/OpenType font files.

Only the pieces needed to find name ID 1 (Font Family) are parsed: the
sfnt table directory, the ``name`` table, and the TTC header for font
collections. All reads go through `BinaryReader`, which raises
`FontParseError` instead of returning short data.
"""

from __future__ import annotations

from pathlib import Path
import struct
from typing import BinaryIO

from core.errors import FontParseError

NAME_TABLE_READ_CAP = 64 * 1024
TTC_FACE_CAP = 20
FAMILY_NAME_ID = 1

PLATFORM_MACINTOSH = 1
PLATFORM_WINDOWS = 3

_SFNT_HEADER_SIZE = 12
_TABLE_RECORD_SIZE = 16
_NAME_RECORD_SIZE = 12


class BinaryReader:
    """Big-endian cursor over a byte buffer with bounds-checked reads."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self.pos = 0

    def __len__(self) -> int:
        return len(self._data)

    def seek(self, pos: int) -> None:
        if not 0 <= pos <= len(self._data):
            raise FontParseError(f"seek to {pos} outside buffer of {len(self._data)} bytes")
        self.pos = pos

    def skip(self, count: int) -> None:
        self.seek(self.pos + count)

    def read(self, count: int) -> bytes:
        end = self.pos + count
        if count < 0 or end > len(self._data):
            raise FontParseError(
                f"read of {count} bytes at {self.pos} exceeds buffer of {len(self._data)} bytes"
            )
        chunk = self._data[self.pos : end]
        self.pos = end
        return chunk

    def u16(self) -> int:
        return struct.unpack(">H", self.read(2))[0]

    def u32(self) -> int:
        return struct.unpack(">I", self.read(4))[0]

    def tag(self) -> str:
        return self.read(4).decode("latin-1")


def _read_exact(f: BinaryIO, offset: int, length: int) -> BinaryReader:
    f.seek(offset)
    data = f.read(length)
    if len(data) < length:
        raise FontParseError(f"unexpected end of file reading {length} bytes at {offset}")
    return BinaryReader(data)


def parse_family_name(table: BinaryReader) -> str | None:
    """Return the Family name from a ``name`` table buffer.

    A Windows-platform record is decoded as UTF-16BE and wins immediately. A
    Macintosh record is decoded as Latin-1 and kept only until a Windows record
    turns up. Records pointing past the buffer are skipped.
    """
    table.seek(2)
    count = table.u16()
    string_offset = table.u16()
    family: str | None = None

    for i in range(count):
        record = 6 + i * _NAME_RECORD_SIZE
        if record + _NAME_RECORD_SIZE > len(table):
            break
        table.seek(record)
        platform_id = table.u16()
        table.skip(4)  # encoding ID, language ID
        name_id = table.u16()
        length = table.u16()
        offset = table.u16()
        if name_id != FAMILY_NAME_ID:
            continue

        start = string_offset + offset
        if start + length > len(table):
            continue
        table.seek(start)
        raw = table.read(length)

        if platform_id == PLATFORM_WINDOWS:
            return raw.decode("utf-16-be", errors="replace") or None
        if platform_id == PLATFORM_MACINTOSH and not family:
            family = raw.decode("latin-1")

    return family or None


def read_face_family_name(f: BinaryIO, face_offset: int = 0) -> str | None:
    """Family name of the sfnt face starting at `face_offset`."""
    header = _read_exact(f, face_offset, _SFNT_HEADER_SIZE)
    header.seek(4)
    num_tables = header.u16()
    directory = _read_exact(f, face_offset + _SFNT_HEADER_SIZE, num_tables * _TABLE_RECORD_SIZE)

    name_offset = name_length = 0
    for _ in range(num_tables):
        tag = directory.tag()
        directory.skip(4)  # checksum
        table_offset = directory.u32()
        table_length = directory.u32()
        if tag == "name":
            name_offset, name_length = table_offset, table_length
            break

    if not name_offset or not name_length:
        return None

    f.seek(name_offset)
    data = f.read(min(name_length, NAME_TABLE_READ_CAP))
    return parse_family_name(BinaryReader(data))


def read_collection_family_names(f: BinaryIO) -> list[str]:
    """Union of family names across the first `TTC_FACE_CAP` faces of a collection."""
    header = _read_exact(f, 0, _SFNT_HEADER_SIZE)
    header.seek(8)
    num_fonts = header.u32()
    faces = min(num_fonts, TTC_FACE_CAP)
    offsets_reader = _read_exact(f, _SFNT_HEADER_SIZE, faces * 4)

    names: list[str] = []
    for _ in range(faces):
        face_offset = offsets_reader.u32()
        try:
            name = read_face_family_name(f, face_offset)
        except FontParseError:
            continue
        if name and name not in names:
            names.append(name)
    return names


def read_font_family_names(path: str | Path) -> list[str]:
    """Family names declared by a ``.ttf``/``.otf``/``.ttc`` file.

    Raises:
        FontParseError: Malformed tables.
        OSError: The file cannot be opened or read.
    """
    p = Path(path)
    with p.open("rb") as f:
        if p.suffix.lower() == ".ttc":
            return read_collection_family_names(f)
        name = read_face_family_name(f, 0)
        return [name] if name else []

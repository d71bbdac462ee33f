"""Builders for synthetic sfnt/TTC font files."""

import struct

MAC, WIN = 1, 3


def name_table(records):
    """Build a format-0 name table from (platform, name_id, raw bytes) triples."""
    header_len = 6 + 12 * len(records)
    rec_bytes = b""
    strings = b""
    for platform, name_id, raw in records:
        encoding, language = (1, 0x409) if platform == WIN else (0, 0)
        rec_bytes += struct.pack(
            ">6H", platform, encoding, language, name_id, len(raw), len(strings)
        )
        strings += raw
    return struct.pack(">3H", 0, len(records), header_len) + rec_bytes + strings


def sfnt(table: bytes, base: int = 0) -> bytes:
    """Single-table sfnt whose name table offset is absolute from `base`."""
    header = struct.pack(">I4H", 0x00010000, 1, 16, 0, 0)
    record = b"name" + struct.pack(">3I", 0, base + 12 + 16, len(table))
    return header + record + table


def ttc(faces: list[bytes]) -> bytes:
    """Collection of pre-built name tables, one face each."""
    header_len = 12 + 4 * len(faces)
    out = b""
    offsets = []
    for table in faces:
        offsets.append(header_len + len(out))
        out += sfnt(table, base=offsets[-1])
    header = b"ttcf" + struct.pack(">2HI", 1, 0, len(faces))
    return header + struct.pack(f">{len(faces)}I", *offsets) + out

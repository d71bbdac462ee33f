"""Tests for binary font name-table parsing."""

import struct

import pytest

from core.errors import FontParseError
from infrastructure.font_names import (
    TTC_FACE_CAP,
    BinaryReader,
    parse_family_name,
    read_font_family_names,
)
from fontdata import MAC, WIN, name_table, sfnt, ttc


def test_windows_record_wins_over_mac():
    """Test the Windows UTF-16BE record is preferred."""
    table = name_table(
        [
            (MAC, 1, b"Mac Family"),
            (WIN, 1, "思源黑体".encode("utf-16-be")),
        ]
    )
    assert parse_family_name(BinaryReader(table)) == "思源黑体"


def test_mac_record_used_alone():
    """Test a Macintosh-only table decodes as Latin-1."""
    table = name_table([(MAC, 4, b"Full Name"), (MAC, 1, b"Caf\xe9 Sans")])
    assert parse_family_name(BinaryReader(table)) == "Café Sans"


def test_no_family_record():
    """Test tables without name ID 1 give None."""
    table = name_table([(WIN, 4, "Full".encode("utf-16-be"))])
    assert parse_family_name(BinaryReader(table)) is None


def test_out_of_bounds_record_skipped():
    """Test a record pointing past the buffer is ignored."""
    good = name_table([(WIN, 1, "Inter".encode("utf-16-be"))])
    header_len = 6 + 12 * 2
    bad_record = struct.pack(">6H", WIN, 1, 0x409, 1, 200, 500)
    good_record = good[6:18]
    strings = good[18:]
    table = struct.pack(">3H", 0, 2, header_len) + bad_record + good_record + strings
    assert parse_family_name(BinaryReader(table)) == "Inter"


def test_reader_bounds():
    """Test short reads raise FontParseError."""
    reader = BinaryReader(b"\x00\x01")
    assert reader.u16() == 1
    with pytest.raises(FontParseError):
        reader.u16()
    with pytest.raises(FontParseError):
        reader.seek(10)


def test_read_ttf(tmp_path):
    """Test reading a single-face font file."""
    path = tmp_path / "Inter-Regular.ttf"
    path.write_bytes(sfnt(name_table([(WIN, 1, "Inter".encode("utf-16-be"))])))
    assert read_font_family_names(path) == ["Inter"]


def test_read_ttc_deduplicates_faces(tmp_path):
    """Test collections union and deduplicate face families."""
    faces = [
        name_table([(WIN, 1, "Noto Sans CJK SC".encode("utf-16-be"))]),
        name_table([(WIN, 1, "Noto Sans CJK TC".encode("utf-16-be"))]),
        name_table([(WIN, 1, "Noto Sans CJK SC".encode("utf-16-be"))]),
    ]
    path = tmp_path / "NotoSansCJK.ttc"
    path.write_bytes(ttc(faces))
    assert read_font_family_names(path) == ["Noto Sans CJK SC", "Noto Sans CJK TC"]


def test_read_ttc_caps_faces(tmp_path):
    """Test only the first faces of a large collection are read."""
    faces = [
        name_table([(WIN, 1, f"Face {i}".encode("utf-16-be"))]) for i in range(TTC_FACE_CAP + 5)
    ]
    path = tmp_path / "Big.ttc"
    path.write_bytes(ttc(faces))
    names = read_font_family_names(path)
    assert len(names) == TTC_FACE_CAP
    assert names[-1] == f"Face {TTC_FACE_CAP - 1}"


def test_truncated_file_raises(tmp_path):
    """Test a truncated header raises FontParseError."""
    path = tmp_path / "Broken.ttf"
    path.write_bytes(b"\x00\x01\x00")
    with pytest.raises(FontParseError):
        read_font_family_names(path)

from __future__ import annotations

import struct

import pytest

from linkshades.protocol.core.header import build_header, parse_header


def test_parse_header_needs_two_bytes():
    assert parse_header(b"") is None
    assert parse_header(b"\x81") is None


def test_parse_header_short_length():
    hdr = parse_header(b"\x81\x05hello")
    assert hdr["fin"] is True
    assert hdr["opcode"] == 0x1
    assert hdr["masked"] is False
    assert hdr["len"] == 5
    assert hdr["mask_key"] is None
    assert hdr["hdr_len"] == 2


def test_parse_header_16bit_length_waits_for_extension():
    assert parse_header(b"\x82\x7e\x01") is None

    hdr = parse_header(b"\x82\x7e" + struct.pack(">H", 300))
    assert hdr["opcode"] == 0x2
    assert hdr["len"] == 300
    assert hdr["hdr_len"] == 4


def test_parse_header_64bit_length_waits_for_extension():
    assert parse_header(b"\x82\x7f" + b"\x00" * 7) is None

    hdr = parse_header(b"\x82\x7f" + struct.pack(">Q", 70000))
    assert hdr["len"] == 70000
    assert hdr["hdr_len"] == 10


def test_parse_header_masked_waits_for_mask_key():
    assert parse_header(b"\x81\x83\x01\x02\x03") is None

    hdr = parse_header(b"\x81\x83\x01\x02\x03\x04")
    assert hdr["masked"] is True
    assert hdr["mask_key"] == b"\x01\x02\x03\x04"
    assert hdr["hdr_len"] == 6


def test_parse_header_fin_clear():
    hdr = parse_header(b"\x01\x00")
    assert hdr["fin"] is False
    assert hdr["opcode"] == 0x1


@pytest.mark.parametrize(
    "length, expected",
    [
        (0, b"\x81\x00"),
        (125, b"\x81\x7d"),
        (126, b"\x81\x7e\x00\x7e"),
        (65535, b"\x81\x7e\xff\xff"),
        (65536, b"\x81\x7f" + struct.pack(">Q", 65536)),
    ],
)
def test_build_header_uses_smallest_encoding(length, expected):
    assert build_header(0x1, length) == expected


def test_build_header_never_sets_mask_bit():
    for n in (3, 200, 70000):
        assert build_header(0x2, n)[1] & 0x80 == 0


def test_build_header_rejects_negative_length():
    with pytest.raises(ValueError):
        build_header(0x1, -1)

from __future__ import annotations

import pytest

from hardware_report.errors import ParseError
from hardware_report.parsers.common import (
    bytes_to_human_readable,
    extract_pci_id,
    find_key_value,
    known,
    normalize_pci_address,
    parse_key_value_block,
    parse_size_to_bytes,
    pci_vendor_name,
    split_blocks,
)


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("16GB", 16 * 1024**3),
        ("2.5 TB", int(2.5 * 1024**4)),
        ("512MB", 512 * 1024**2),
        ("1.5T", int(1.5 * 1024**4)),
        ("64 gib", 64 * 1024**3),
        ("4096 B", 4096),
        ("2.0 TB (2001111162880 Bytes)", 2001111162880),
        ("1.99 TB (1,995,218,165,760 bytes)", 1995218165760),
        ("", 0),
        ("Unknown", 0),
    ],
)
def test_parse_size_to_bytes(text: str, expected: int) -> None:
    assert parse_size_to_bytes(text) == expected


def test_parse_size_to_bytes_rejects_garbage() -> None:
    with pytest.raises(ParseError):
        parse_size_to_bytes("lots")


@pytest.mark.parametrize(
    ("text", "canonical"),
    [
        ("16GB", "16.0 GB"),
        ("16 GB", "16.0 GB"),
        ("16G", "16.0 GB"),
        (" 1.5T ", "1.5 TB"),
        ("2.5 tb", "2.5 TB"),
        ("512M", "512.0 MB"),
        ("750 MiB", "750.0 MB"),
        ("4K", "4.0 KB"),
        ("64 gib", "64.0 GB"),
    ],
)
def test_sizes_render_canonically_and_parse_back_exactly(text: str, canonical: str) -> None:
    rendered = bytes_to_human_readable(parse_size_to_bytes(text))

    assert rendered == canonical
    assert parse_size_to_bytes(rendered) == parse_size_to_bytes(text)


def test_bytes_to_human_readable_formats() -> None:
    assert bytes_to_human_readable(0) == "0 B"
    assert bytes_to_human_readable(512) == "512 B"
    assert bytes_to_human_readable(1536) == "1.5 KB"
    assert bytes_to_human_readable(24 * 1024**3) == "24.0 GB"
    assert bytes_to_human_readable(2 * 1024**5) == "2048.0 TB"


def test_key_value_lookup_is_case_insensitive() -> None:
    text = "Handle 0x0001\n\tSerial Number: ABC123\n\tProduct Name: Widget\n"

    assert find_key_value(text, "serial number") == "ABC123"
    assert find_key_value(text, "Product Name") == "Widget"
    assert find_key_value(text, "UUID") is None


def test_parse_key_value_block_keeps_first_occurrence() -> None:
    values = parse_key_value_block(["Type: DDR4", "Type Detail: Registered", "Type: Other", "Header:"])

    assert values == {"Type": "DDR4", "Type Detail": "Registered"}


def test_extract_pci_id_lowercases_first_pair() -> None:
    line = "01:00.0 VGA compatible controller [0300]: NVIDIA Corporation GA102 [10DE:2204] (rev a1)"

    assert extract_pci_id(line) == "10de:2204"
    assert extract_pci_id("no identifiers here") is None
    assert extract_pci_id("[10de:22]") is None
    assert extract_pci_id("[030000]") is None
    assert extract_pci_id("[abcd]") is None


def test_pci_helpers() -> None:
    assert pci_vendor_name("0x15b3") == "Mellanox"
    assert pci_vendor_name("ffff") == "Unknown"
    assert normalize_pci_address("00000000:01:00.0") == "0000:01:00.0"
    assert normalize_pci_address("41:00.0") == "0000:41:00.0"
    assert normalize_pci_address("0000:3B:00.1") == "0000:3b:00.1"


def test_known_and_split_blocks() -> None:
    assert known(" Unknown ") is None
    assert known("") is None
    assert known("Dell") == "Dell"

    blocks = split_blocks("junk\nMemory Device\n\tSize: 1 GB\nMemory Device\n\tSize: 2 GB\n", "Memory Device")
    assert blocks == [["\tSize: 1 GB"], ["\tSize: 2 GB"]]

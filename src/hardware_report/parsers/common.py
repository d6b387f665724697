"""Shared parsing helpers: size strings, key/value blocks and PCI identifiers."""
from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional

from ..errors import ParseError
from ..model import UNKNOWN

_SIZE_RE = re.compile(r"(\d+(?:\.\d+)?)\s*([BKMGTP])(?:I?B)?")
_MULTIPLIERS = {
    "B": 1,
    "K": 1024,
    "M": 1024**2,
    "G": 1024**3,
    "T": 1024**4,
    "P": 1024**5,
}
_UNITS = ["B", "KB", "MB", "GB", "TB"]
_KEY_VALUE_RE = re.compile(r"^\s*([^:]+):\s*(.+)$")
_PCI_ID_RE = re.compile(r"\[([0-9a-fA-F]{4}):([0-9a-fA-F]{4})\]")

PCI_VENDORS: Dict[str, str] = {
    "10de": "NVIDIA",
    "1002": "AMD",
    "8086": "Intel",
    "106b": "Apple",
    "15b3": "Mellanox",
    "14e4": "Broadcom",
    "10ec": "Realtek",
    "1077": "QLogic",
    "1924": "Solarflare",
    "1af4": "Red Hat",
    "15ad": "VMware",
    "19e5": "Huawei",
    "1d0f": "Amazon",
}


def parse_size_to_bytes(text: str) -> int:
    """Convert strings such as ``"16 GB"`` or ``"2 TB (2000398934016 bytes)"`` to bytes.

    An explicit parenthesized byte count wins over the rounded value in front
    of it. Empty input and ``"Unknown"`` count as zero.
    """
    text = text.strip()
    if not text or text.lower() == "unknown":
        return 0

    if "(" in text and "bytes)" in text.lower():
        inner = text[text.index("(") + 1 :]
        digits = inner[: inner.lower().index("bytes)")].strip().replace(",", "")
        if digits.isdigit():
            return int(digits)

    normalized = text.replace(" ", "").replace(",", "").upper()
    match = _SIZE_RE.search(normalized)
    if not match:
        raise ParseError(f"Unrecognized size: {text!r}")
    value = float(match.group(1))
    return int(value * _MULTIPLIERS[match.group(2)])


def bytes_to_human_readable(num_bytes: int) -> str:
    if num_bytes == 0:
        return "0 B"
    size = float(num_bytes)
    unit_index = 0
    while size >= 1024 and unit_index < len(_UNITS) - 1:
        size /= 1024
        unit_index += 1
    if unit_index == 0:
        return f"{num_bytes} B"
    return f"{size:.1f} {_UNITS[unit_index]}"


def find_key_value(text: str, key: str) -> Optional[str]:
    """Value of the first ``key: value`` line whose key matches case-insensitively."""
    wanted = key.strip().lower()
    for line in text.splitlines():
        match = _KEY_VALUE_RE.match(line)
        if match and match.group(1).strip().lower() == wanted:
            return match.group(2).strip()
    return None


def parse_key_value_block(lines: Iterable[str]) -> Dict[str, str]:
    """Collect every ``key: value`` pair; the first occurrence of a key wins."""
    values: Dict[str, str] = {}
    for line in lines:
        match = _KEY_VALUE_RE.match(line)
        if match:
            values.setdefault(match.group(1).strip(), match.group(2).strip())
    return values


def extract_pci_id(text: str) -> Optional[str]:
    """Return the first bracketed ``vvvv:dddd`` hexadecimal vendor/device pair."""
    match = _PCI_ID_RE.search(text)
    if not match:
        return None
    return f"{match.group(1).lower()}:{match.group(2).lower()}"


def pci_vendor_name(vendor_id: str) -> str:
    return PCI_VENDORS.get(vendor_id.lower().removeprefix("0x"), UNKNOWN)


def normalize_pci_address(address: str) -> str:
    """Turn ``00000000:01:00.0`` or ``01:00.0`` into the sysfs form ``0000:01:00.0``."""
    address = address.strip().lower()
    parts = address.split(":")
    if len(parts) == 2:
        return "0000:" + address
    if len(parts) == 3:
        return f"{parts[0][-4:].zfill(4)}:{parts[1]}:{parts[2]}"
    return address


def known(value: Optional[str]) -> Optional[str]:
    """Map empty and ``Unknown`` values to ``None``."""
    if value is None:
        return None
    value = value.strip()
    if not value or value.lower() == "unknown":
        return None
    return value


def split_blocks(text: str, marker: str) -> List[List[str]]:
    """Split text into blocks that each start at a line equal to ``marker``."""
    blocks: List[List[str]] = []
    current: Optional[List[str]] = None
    for line in text.splitlines():
        if line.strip() == marker:
            current = []
            blocks.append(current)
        elif current is not None:
            current.append(line)
    return blocks

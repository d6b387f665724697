"""Memory parsers for free, dmidecode and system_profiler output."""
from __future__ import annotations

import re
from typing import Iterable, List, Optional

from ..errors import ParseError
from ..model import UNKNOWN, MemoryInfo, MemoryModule
from .common import bytes_to_human_readable, parse_key_value_block, parse_size_to_bytes, split_blocks

EMPTY_SLOT_SIZES = {"no module installed", "not installed", "unknown", "empty"}
_BANK_HEADER_RE = re.compile(r"^(BANK|Bank|DIMM)\b.*:$")


def parse_free_output(text: str, unit: int = 1024) -> int:
    """Return total memory in bytes from the ``Mem:`` line of ``free``.

    The first numeric column is multiplied by ``unit``: 1024 for the default
    KiB output, 1 when ``free -b`` was used.
    """
    for line in text.splitlines():
        if line.strip().startswith("Mem:"):
            for token in line.split()[1:]:
                if token.isdigit():
                    return int(token) * unit
            break
    raise ParseError("No 'Mem:' line with a numeric total in free output")


def parse_free_total(text: str, unit: int = 1024) -> str:
    return bytes_to_human_readable(parse_free_output(text, unit))


def parse_dmidecode_memory(text: str) -> List[MemoryModule]:
    """Return one module per populated ``Memory Device`` block of ``dmidecode -t memory``."""
    modules: List[MemoryModule] = []
    for block in split_blocks(text, "Memory Device"):
        values = parse_key_value_block(block)
        size = values.get("Size", UNKNOWN)
        if size.lower() in EMPTY_SLOT_SIZES:
            continue
        modules.append(
            MemoryModule(
                size=size,
                type_=values.get("Type", UNKNOWN),
                speed=values.get("Speed", UNKNOWN),
                location=values.get("Locator", UNKNOWN),
                manufacturer=values.get("Manufacturer", UNKNOWN),
                serial=values.get("Serial Number", UNKNOWN),
            )
        )
    return modules


def determine_memory_type(modules: Iterable[MemoryModule]) -> str:
    return _common_value(module.type_ for module in modules)


def determine_memory_speed(modules: Iterable[MemoryModule]) -> str:
    return _common_value(module.speed for module in modules)


def _common_value(values: Iterable[str]) -> str:
    distinct = {value for value in values}
    if not distinct:
        return UNKNOWN
    if len(distinct) == 1:
        return distinct.pop()
    return "Mixed"


def parse_macos_memory(text: str) -> MemoryInfo:
    """Parse ``system_profiler SPMemoryDataType``.

    Intel Macs list one section per bank with a ``Size:`` entry; Apple silicon
    reports a single unified pool, which becomes one synthetic module.
    """
    banks = _macos_memory_banks(text)
    if banks:
        total = sum(_size_or_zero(module.size) for module in banks)
        return MemoryInfo(
            total=bytes_to_human_readable(total) if total else UNKNOWN,
            type_=determine_memory_type(banks),
            speed=determine_memory_speed(banks),
            modules=banks,
        )

    values = parse_key_value_block(text.splitlines())
    total = values.get("Memory", UNKNOWN)
    memory_type = values.get("Type", UNKNOWN)
    manufacturer = values.get("Manufacturer", UNKNOWN)
    speed = "Integrated" if "LPDDR" in memory_type.upper() else UNKNOWN

    modules: List[MemoryModule] = []
    if total != UNKNOWN:
        modules.append(
            MemoryModule(
                size=total,
                type_=memory_type,
                speed="Integrated",
                location="System Memory",
                manufacturer=manufacturer,
                serial="N/A",
            )
        )
    return MemoryInfo(total=total, type_=memory_type, speed=speed, modules=modules)


def _macos_memory_banks(text: str) -> List[MemoryModule]:
    banks: List[MemoryModule] = []
    location: Optional[str] = None
    current: List[str] = []

    def flush() -> None:
        if location is None:
            return
        values = parse_key_value_block(current)
        size = values.get("Size")
        if not size or size.lower() in EMPTY_SLOT_SIZES:
            return
        banks.append(
            MemoryModule(
                size=size,
                type_=values.get("Type", UNKNOWN),
                speed=values.get("Speed", UNKNOWN),
                location=location,
                manufacturer=values.get("Manufacturer", UNKNOWN),
                serial=values.get("Serial Number", UNKNOWN),
            )
        )

    for line in text.splitlines():
        stripped = line.strip()
        if _BANK_HEADER_RE.match(stripped):
            flush()
            location = stripped.rstrip(":")
            current = []
        elif location is not None:
            current.append(line)
    flush()
    return banks


def _size_or_zero(size: str) -> int:
    try:
        return parse_size_to_bytes(size)
    except ParseError:
        return 0


def parse_meminfo_total(text: str) -> int:
    """Return ``MemTotal`` from ``/proc/meminfo`` in bytes."""
    for line in text.splitlines():
        if line.startswith("MemTotal:"):
            tokens = line.split()
            if len(tokens) >= 2 and tokens[1].isdigit():
                return int(tokens[1]) * 1024
    raise ParseError("No MemTotal entry in meminfo")

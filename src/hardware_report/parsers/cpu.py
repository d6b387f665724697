"""CPU parsers for lscpu, dmidecode, system_profiler and sysctl output."""
from __future__ import annotations

import json
import re
from dataclasses import fields, replace
from typing import Any, Dict, List, Optional

from ..errors import ParseError
from ..model import UNKNOWN, CpuInfo
from .common import find_key_value, known, parse_key_value_block

UNKNOWN_CPU = "Unknown CPU"


def parse_lscpu_json(text: str) -> CpuInfo:
    """Parse ``lscpu -J``; nested ``children`` entries are flattened."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Invalid lscpu JSON: {exc}") from exc
    entries = data.get("lscpu") if isinstance(data, dict) else None
    if not isinstance(entries, list):
        raise ParseError("lscpu JSON has no 'lscpu' list")

    table: Dict[str, str] = {}
    _flatten_lscpu(entries, table)
    return _cpu_from_table(table)


def parse_lscpu_text(text: str) -> CpuInfo:
    return _cpu_from_table(parse_key_value_block(text.splitlines()))


def _flatten_lscpu(entries: List[Any], table: Dict[str, str]) -> None:
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        name = str(entry.get("field", "")).strip().rstrip(":")
        data = entry.get("data")
        if name and data is not None:
            table.setdefault(name, str(data).strip())
        _flatten_lscpu(entry.get("children") or [], table)


def _cpu_from_table(table: Dict[str, str]) -> CpuInfo:
    cpu = CpuInfo()
    cpu.model = table.get("Model name") or UNKNOWN_CPU

    cores_per_socket = _positive_int(table.get("Core(s) per socket"))
    sockets = _positive_int(table.get("Socket(s)")) or 1
    threads_per_core = _positive_int(table.get("Thread(s) per core")) or 1
    logical = _positive_int(table.get("CPU(s)"))

    cpu.sockets = sockets
    if cores_per_socket:
        cpu.cores = cores_per_socket
    elif logical:
        cpu.cores = max(logical // (sockets * threads_per_core), 1)
    cpu.threads = threads_per_core

    max_mhz = _float_or_none(table.get("CPU max MHz"))
    min_mhz = _float_or_none(table.get("CPU min MHz"))
    current_mhz = table.get("CPU MHz")
    if table.get("CPU max MHz"):
        cpu.speed = f"{table['CPU max MHz']} MHz"
    elif current_mhz:
        cpu.speed = f"{current_mhz} MHz"
    cpu.max_frequency_mhz = max_mhz
    cpu.min_frequency_mhz = min_mhz

    cpu.vendor = table.get("Vendor ID")
    cpu.architecture = table.get("Architecture")
    # util-linux 2.37 dropped the " cache" suffix from these keys.
    cpu.l1d_cache = table.get("L1d cache") or table.get("L1d")
    cpu.l1i_cache = table.get("L1i cache") or table.get("L1i")
    cpu.l2_cache = table.get("L2 cache") or table.get("L2")
    cpu.l3_cache = table.get("L3 cache") or table.get("L3")
    cpu.flags = table.get("Flags", "").split()
    cpu.numa_nodes = _positive_int(table.get("NUMA node(s)"))
    return cpu


def parse_dmidecode_processor(text: str) -> CpuInfo:
    """Parse ``dmidecode -t processor``; only the first processor block is used."""
    cpu = CpuInfo()
    cpu.model = known(find_key_value(text, "Version")) or UNKNOWN_CPU
    speed = known(find_key_value(text, "Current Speed")) or known(find_key_value(text, "Max Speed"))
    if speed:
        cpu.speed = speed
    cpu.cores = _positive_int(find_key_value(text, "Core Count")) or 1
    thread_count = _positive_int(find_key_value(text, "Thread Count")) or cpu.cores
    cpu.threads = max(thread_count // cpu.cores, 1)
    cpu.sockets = 1
    cpu.vendor = known(find_key_value(text, "Manufacturer"))
    return cpu


def parse_macos_hardware_cpu(text: str) -> CpuInfo:
    """Parse the CPU portion of ``system_profiler SPHardwareDataType``."""
    cpu = CpuInfo()
    cpu.model = (
        known(find_key_value(text, "Chip"))
        or known(find_key_value(text, "Processor Name"))
        or UNKNOWN_CPU
    )
    cores = find_key_value(text, "Total Number of Cores")
    if cores:
        cpu.cores = _positive_int(cores.split()[0]) or 1
    cpu.speed = known(find_key_value(text, "Processor Speed")) or UNKNOWN
    cpu.threads = 1
    cpu.sockets = 1
    if cpu.model.startswith("Apple M"):
        cpu.vendor = "Apple"
        cpu.microarchitecture = "Apple Silicon"
    return cpu


def parse_sysctl_hw(text: str) -> Dict[str, str]:
    """Parse ``sysctl hw`` output (``hw.key: value`` lines)."""
    values: Dict[str, str] = {}
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        if sep and key.strip().startswith("hw."):
            values[key.strip()] = value.strip()
    return values


def apply_sysctl_hw(cpu: CpuInfo, sysctl: Dict[str, str]) -> CpuInfo:
    updates: Dict[str, Any] = {}
    if "hw.machine" in sysctl:
        updates["architecture"] = sysctl["hw.machine"]
    for key, attr in (
        ("hw.l1dcachesize", "l1d_cache"),
        ("hw.l1icachesize", "l1i_cache"),
        ("hw.l2cachesize", "l2_cache"),
        ("hw.l3cachesize", "l3_cache"),
    ):
        size = _positive_int(sysctl.get(key))
        if size:
            updates[attr] = _cache_size(size)
    frequency = _positive_int(sysctl.get("hw.cpufrequency_max"))
    if frequency:
        updates["max_frequency_mhz"] = frequency / 1_000_000
    return replace(cpu, **updates)


def combine_cpu_info(primary: CpuInfo, secondary: CpuInfo) -> CpuInfo:
    """Prefer ``primary`` field by field, falling back to ``secondary`` where unknown."""
    merged: Dict[str, Any] = {}
    for item in fields(CpuInfo):
        value = getattr(primary, item.name)
        fallback = getattr(secondary, item.name)
        merged[item.name] = fallback if _is_unset(item.name, value) else value
    return CpuInfo(**merged)


def _is_unset(name: str, value: Any) -> bool:
    if value is None or value == "" or value == []:
        return True
    if name == "model":
        return value == UNKNOWN_CPU
    if name == "speed":
        return value == UNKNOWN
    if name in ("cores", "threads", "sockets"):
        return value == 0
    return False


def _cache_size(size: int) -> str:
    if size % (1024 * 1024) == 0:
        return f"{size // (1024 * 1024)} MiB"
    return f"{size // 1024} KiB"


def _positive_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    match = re.match(r"\s*(\d+)", str(value))
    if not match:
        return None
    number = int(match.group(1))
    return number if number > 0 else None


def _float_or_none(value: Optional[str]) -> Optional[float]:
    try:
        return float(value) if value else None
    except ValueError:
        return None

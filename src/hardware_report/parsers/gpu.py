"""GPU parsers for nvidia-smi, lspci and system_profiler output."""
from __future__ import annotations

import re
from typing import List, Optional

from ..errors import ParseError
from ..model import UNKNOWN, GpuDevice, GpuVendor
from .common import bytes_to_human_readable, extract_pci_id, normalize_pci_address

NVIDIA_QUERY_FIELDS = (
    "index",
    "name",
    "uuid",
    "memory.total",
    "memory.free",
    "pci.bus_id",
    "driver_version",
    "compute_cap",
)

APPLE_GPU_CORES = {
    "M1 Pro": 16,
    "M1 Max": 32,
    "M1 Ultra": 64,
    "M2 Pro": 19,
    "M2 Max": 38,
    "M2 Ultra": 76,
    "M3 Pro": 18,
    "M3 Max": 40,
    "M3 Ultra": 80,
    "M4 Pro": 20,
    "M4 Max": 40,
}
APPLE_FABRIC = "Apple Fabric (Integrated)"

_APPLE_CHIP_RE = re.compile(r"\b(M[1-4])\s+(Pro|Max|Ultra)\b")
_LSPCI_LINE_RE = re.compile(r"^(?P<slot>\S+)\s+(?P<class>[^:]*?):\s+(?P<name>.*)$")
_LSPCI_TRAILER_RE = re.compile(r"\s*(\[[0-9a-fA-F]{4}:[0-9a-fA-F]{4}\])?\s*(\(rev [^)]*\))?\s*$")


def parse_nvidia_smi_csv(text: str) -> List[GpuDevice]:
    """Parse ``nvidia-smi --query-gpu=... --format=csv,noheader,nounits``."""
    devices: List[GpuDevice] = []
    for line in text.splitlines():
        if not line.strip():
            continue
        columns = [column.strip() for column in line.split(",")]
        if len(columns) < 4:
            raise ParseError(f"Unexpected nvidia-smi line: {line!r}")
        try:
            index = int(columns[0])
            memory_total_mb = int(float(columns[3]))
        except ValueError as exc:
            raise ParseError(f"Unexpected nvidia-smi line: {line!r}") from exc

        extra = columns[4:] + [""] * (8 - len(columns))
        memory_free, bus_id, driver, compute = (_optional(value) for value in extra[:4])
        devices.append(
            GpuDevice(
                index=index,
                name=columns[1],
                uuid=columns[2],
                memory=bytes_to_human_readable(memory_total_mb * 1024 * 1024),
                memory_total_mb=memory_total_mb,
                memory_free_mb=int(float(memory_free)) if memory_free else None,
                pci_bus_id=normalize_pci_address(bus_id) if bus_id else None,
                vendor=GpuVendor.NVIDIA.value,
                vendor_enum=GpuVendor.NVIDIA,
                driver_version=driver,
                compute_capability=compute,
                detection_method="nvidia-smi",
            )
        )
    return devices


def _optional(value: str) -> Optional[str]:
    if not value or value.upper() in ("N/A", "[N/A]", "[NOT SUPPORTED]"):
        return None
    return value


def is_gpu_line(line: str) -> bool:
    lowered = line.lower()
    return "vga" in lowered or "3d" in lowered


def parse_lspci_gpus(text: str) -> List[GpuDevice]:
    """Parse ``lspci -nn`` keeping display controllers."""
    devices: List[GpuDevice] = []
    for line in text.splitlines():
        if not is_gpu_line(line):
            continue
        match = _LSPCI_LINE_RE.match(line.strip())
        if not match:
            continue
        pci_id = extract_pci_id(line)
        vendor = GpuVendor.from_pci_vendor(pci_id.split(":")[0]) if pci_id else GpuVendor.UNKNOWN
        name = _LSPCI_TRAILER_RE.sub("", match.group("name")).strip()
        devices.append(
            GpuDevice(
                index=len(devices),
                name=name,
                uuid=f"lspci-gpu-{len(devices)}",
                pci_id=pci_id or UNKNOWN,
                pci_bus_id=normalize_pci_address(match.group("slot")),
                vendor=vendor.value,
                vendor_enum=vendor,
                detection_method="lspci",
            )
        )
    return devices


def parse_macos_displays(text: str) -> List[GpuDevice]:
    """Parse ``system_profiler SPDisplaysDataType`` into a single synthetic device."""
    for line in text.splitlines():
        match = _APPLE_CHIP_RE.search(line)
        if not match:
            continue
        chip = f"{match.group(1)} {match.group(2)}"
        cores = APPLE_GPU_CORES.get(chip)
        key, _, value = line.partition(":")
        label = value.strip() or key.strip()
        if not label.startswith("Apple"):
            label = f"Apple {label}"
        return [
            GpuDevice(
                index=0,
                name=f"{label} (Metal 3)",
                uuid="macOS-GPU-0",
                memory=f"Unified Memory ({cores if cores else UNKNOWN} GPU cores)",
                pci_id=APPLE_FABRIC,
                vendor=GpuVendor.APPLE.value,
                vendor_enum=GpuVendor.APPLE,
                detection_method="system_profiler",
            )
        ]

    return [
        GpuDevice(
            index=0,
            name="Integrated Graphics",
            uuid="macOS-GPU-0",
            memory=UNKNOWN,
            pci_id=APPLE_FABRIC,
            vendor=GpuVendor.APPLE.value,
            vendor_enum=GpuVendor.APPLE,
            detection_method="system_profiler",
        )
    ]

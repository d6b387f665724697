"""Storage parsers and the merge rules for combining detection sources."""
from __future__ import annotations

import json
import re
from dataclasses import replace
from functools import reduce
from typing import Any, Dict, List, Optional, Sequence

from ..errors import ParseError
from ..model import UNKNOWN, StorageDevice, StorageType
from .common import bytes_to_human_readable, find_key_value, parse_key_value_block, parse_size_to_bytes

SECTOR_SIZE = 512
MIN_DEVICE_BYTES = 1024**3
VIRTUAL_PREFIXES = ("loop", "ram", "zram", "dm-", "sr", "nbd", "fd")
FILLABLE_FIELDS = ("model", "serial_number", "firmware_version", "wwn")

_NVME_NAMESPACE_RE = re.compile(r"^(nvme\d+)n\d+")


def classify_storage_device(name: str, rotational: Optional[bool]) -> StorageType:
    if name.startswith("nvme"):
        return StorageType.NVME
    if name.startswith("mmcblk"):
        return StorageType.EMMC
    if name.startswith(VIRTUAL_PREFIXES):
        return StorageType.VIRTUAL
    if rotational is True:
        return StorageType.HDD
    if rotational is False:
        return StorageType.SSD
    return StorageType.UNKNOWN


def interface_for(device_type: StorageType) -> str:
    if device_type is StorageType.NVME:
        return "NVMe"
    if device_type is StorageType.EMMC:
        return "eMMC"
    if device_type in (StorageType.SSD, StorageType.HDD):
        return "SATA"
    return UNKNOWN


def nvme_controller(name: str) -> str:
    """``nvme0n1`` lives under controller ``nvme0``."""
    match = _NVME_NAMESPACE_RE.match(name)
    return match.group(1) if match else name


def parse_sysfs_size(text: str) -> int:
    """``/sys/block/<dev>/size`` counts 512-byte sectors."""
    text = text.strip()
    if not text.isdigit():
        raise ParseError(f"Invalid sector count: {text!r}")
    return int(text) * SECTOR_SIZE


def parse_sysfs_rotational(text: Optional[str]) -> Optional[bool]:
    if text is None:
        return None
    text = text.strip()
    if text == "1":
        return True
    if text == "0":
        return False
    return None


def build_storage_device(
    name: str,
    size_bytes: int,
    rotational: Optional[bool],
    *,
    model: str = "",
    serial_number: Optional[str] = None,
    firmware_version: Optional[str] = None,
    wwn: Optional[str] = None,
    interface: Optional[str] = None,
    detection_method: str = "",
) -> StorageDevice:
    device_type = classify_storage_device(name, rotational)
    return StorageDevice(
        name=name,
        device_type=device_type,
        type_=device_type.value,
        size_bytes=size_bytes,
        model=model,
        serial_number=serial_number or None,
        firmware_version=firmware_version or None,
        wwn=wwn or None,
        interface=interface or interface_for(device_type),
        is_rotational=bool(rotational),
        detection_method=detection_method,
    )


def parse_lsblk_json(text: str) -> List[StorageDevice]:
    """Parse ``lsblk -J -b -d -o NAME,SIZE,ROTA,MODEL,SERIAL,WWN,TRAN,TYPE``."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Invalid lsblk JSON: {exc}") from exc
    entries = data.get("blockdevices") if isinstance(data, dict) else None
    if not isinstance(entries, list):
        raise ParseError("lsblk JSON has no 'blockdevices' list")

    devices: List[StorageDevice] = []
    for entry in entries:
        name = entry.get("name")
        if not name or entry.get("type", "disk") != "disk":
            continue
        size_bytes = _lsblk_int(entry.get("size"))
        devices.append(
            build_storage_device(
                name,
                size_bytes,
                _lsblk_bool(entry.get("rota")),
                model=(entry.get("model") or "").strip(),
                serial_number=(entry.get("serial") or "").strip(),
                wwn=(entry.get("wwn") or "").strip(),
                interface=_transport(entry.get("tran")),
                detection_method="lsblk",
            )
        )
    return devices


def _lsblk_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    if isinstance(value, str) and value.strip():
        return parse_size_to_bytes(value)
    return 0


def _lsblk_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if value in ("1", 1):
        return True
    if value in ("0", 0):
        return False
    return None


def _transport(value: Any) -> Optional[str]:
    if not value:
        return None
    return str(value).strip().upper()


def merge_storage_devices(primary: List[StorageDevice], secondary: Sequence[StorageDevice]) -> List[StorageDevice]:
    """Keep every primary device, fill its empty fields from a same-named
    secondary device and append secondary devices the primary did not see."""
    by_name = {device.name: device for device in secondary}
    merged: List[StorageDevice] = []
    seen = set()
    for device in primary:
        other = by_name.get(device.name)
        if other is not None:
            updates = {
                attr: getattr(other, attr)
                for attr in FILLABLE_FIELDS
                if not getattr(device, attr) and getattr(other, attr)
            }
            device = replace(device, **updates)
        merged.append(device)
        seen.add(device.name)
    merged.extend(device for device in secondary if device.name not in seen)
    return merged


def merge_storage_sources(*sources: Sequence[StorageDevice]) -> List[StorageDevice]:
    """Fold sources in priority order; earlier sources win."""
    return reduce(merge_storage_devices, sources, [])


def finalize_storage_devices(devices: Sequence[StorageDevice]) -> List[StorageDevice]:
    """Drop virtual and tiny devices, fill derived fields and sort by name."""
    result = []
    for device in devices:
        if device.device_type is StorageType.VIRTUAL or device.size_bytes < MIN_DEVICE_BYTES:
            continue
        result.append(
            replace(
                device,
                device_path=device.device_path or f"/dev/{device.name}",
                size_gb=round(device.size_bytes / 1024**3, 2),
                size=bytes_to_human_readable(device.size_bytes),
                type_=device.device_type.value,
            )
        )
    return sorted(result, key=lambda device: device.name)


def parse_macos_storage(text: str) -> List[StorageDevice]:
    """Parse ``system_profiler SPStorageDataType``; volumes sharing a drive collapse to one device."""
    devices: Dict[str, StorageDevice] = {}
    for volume in _macos_volumes(text):
        values = parse_key_value_block(volume)
        name = values.get("Device Name")
        if not name:
            continue
        capacity = values.get("Capacity")
        size_bytes = parse_size_to_bytes(capacity) if capacity else 0
        protocol = values.get("Protocol", UNKNOWN)
        device_type = _macos_device_type(values.get("Medium Type", ""), protocol)
        rotational = device_type is StorageType.HDD
        existing = devices.get(name)
        if existing is not None and existing.size_bytes >= size_bytes:
            continue
        devices[name] = StorageDevice(
            name=name,
            device_path=_bsd_device_path(values.get("BSD Name")),
            device_type=device_type,
            type_=device_type.value,
            size_bytes=size_bytes,
            model=name,
            serial_number=None,
            interface=protocol,
            is_rotational=rotational,
            detection_method="system_profiler",
        )
    return list(devices.values())


def _macos_device_type(medium: str, protocol: str) -> StorageType:
    medium = medium.strip().upper()
    if medium in ("HDD", "ROTATIONAL"):
        return StorageType.HDD
    if medium != "SSD":
        return StorageType.UNKNOWN
    if protocol in ("PCI-Express", "Apple Fabric", "NVMExpress"):
        return StorageType.NVME
    return StorageType.SSD


def _macos_volumes(text: str) -> List[List[str]]:
    """Group lines by volume: a volume header is a line at the shallowest
    indentation below the ``Storage:`` title that ends with a colon."""
    volumes: List[List[str]] = []
    header_indent: Optional[int] = None
    for line in text.splitlines():
        if not line.strip() or line.strip() == "Storage:":
            continue
        indent = len(line) - len(line.lstrip())
        if line.rstrip().endswith(":") and (header_indent is None or indent <= header_indent):
            header_indent = indent
            volumes.append([])
        elif volumes:
            volumes[-1].append(line)
    return volumes


def _bsd_device_path(bsd_name: Optional[str]) -> str:
    if not bsd_name:
        return ""
    match = re.match(r"^(disk\d+)", bsd_name)
    return f"/dev/{match.group(1) if match else bsd_name}"


def parse_diskutil_info(text: str) -> Optional[StorageDevice]:
    """Parse ``diskutil info <disk>`` for a whole physical disk."""
    name = find_key_value(text, "Device / Media Name") or find_key_value(text, "Media Name")
    size_text = find_key_value(text, "Disk Size") or find_key_value(text, "Total Size")
    if not name or not size_text:
        return None
    solid_state = find_key_value(text, "Solid State")
    rotational = None if solid_state is None else solid_state.lower() != "yes"
    protocol = find_key_value(text, "Protocol") or UNKNOWN
    device_type = StorageType.UNKNOWN if rotational is None else (StorageType.HDD if rotational else StorageType.SSD)
    node = find_key_value(text, "Device Node") or ""
    return StorageDevice(
        name=name,
        device_path=node,
        device_type=device_type,
        type_=device_type.value,
        size_bytes=parse_size_to_bytes(size_text),
        model=name,
        interface=protocol,
        is_rotational=bool(rotational),
        detection_method="diskutil",
    )


def parent_disk_name(partition: str) -> str:
    """``sda1`` -> ``sda``, ``nvme0n1p2`` -> ``nvme0n1``, ``mmcblk0p1`` -> ``mmcblk0``."""
    match = re.match(r"^((?:nvme\d+n\d+)|(?:mmcblk\d+))p\d+$", partition)
    if match:
        return match.group(1)
    if partition.startswith(("nvme", "mmcblk")):
        return partition
    return re.sub(r"\d+$", "", partition) or partition

"""Identity parsers: DMI system/BIOS/chassis/baseboard tables, macOS hardware overview, df."""
from __future__ import annotations

from typing import List, Optional

from ..errors import ParseError
from ..model import BiosInfo, ChassisInfo, MotherboardInfo, SystemInfo
from .common import find_key_value, known

DESKTOP_MODELS = ("iMac", "Mac Pro", "Mac Studio", "Mac mini")


def parse_dmidecode_system(text: str) -> SystemInfo:
    return SystemInfo(
        uuid=known(find_key_value(text, "UUID")),
        serial=known(find_key_value(text, "Serial Number")),
        product_name=known(find_key_value(text, "Product Name")),
        product_manufacturer=known(find_key_value(text, "Manufacturer")),
    )


def parse_dmidecode_bios(text: str) -> BiosInfo:
    version = known(find_key_value(text, "Version"))
    return BiosInfo(
        vendor=known(find_key_value(text, "Vendor")),
        version=version,
        release_date=known(find_key_value(text, "Release Date")),
        firmware_version=(
            known(find_key_value(text, "Firmware Revision"))
            or known(find_key_value(text, "BIOS Revision"))
            or version
        ),
    )


def parse_dmidecode_chassis(text: str) -> ChassisInfo:
    return ChassisInfo(
        manufacturer=known(find_key_value(text, "Manufacturer")),
        type_=known(find_key_value(text, "Type")),
        serial=known(find_key_value(text, "Serial Number")),
    )


def parse_dmidecode_baseboard(text: str) -> MotherboardInfo:
    """Parse ``dmidecode -t baseboard``; the ``Features:`` list is joined with commas."""
    return MotherboardInfo(
        manufacturer=known(find_key_value(text, "Manufacturer")),
        product_name=known(find_key_value(text, "Product Name")),
        version=known(find_key_value(text, "Version")),
        serial=known(find_key_value(text, "Serial Number")),
        features=_indented_list(text, "Features"),
        location=known(find_key_value(text, "Location In Chassis")),
        type_=known(find_key_value(text, "Type")),
    )


def _indented_list(text: str, key: str) -> Optional[str]:
    """Collect the lines indented below a bare ``key:`` header."""
    items: List[str] = []
    header_indent: Optional[int] = None
    for line in text.splitlines():
        indent = len(line) - len(line.lstrip())
        if header_indent is None:
            if line.strip() == f"{key}:":
                header_indent = indent
            continue
        if not line.strip() or indent <= header_indent:
            break
        items.append(line.strip())
    return ", ".join(items) or None


def parse_macos_bios(text: str) -> BiosInfo:
    firmware = known(find_key_value(text, "System Firmware Version"))
    return BiosInfo(
        vendor="Apple Inc.",
        version=firmware,
        release_date=known(find_key_value(text, "OS Loader Version")),
        firmware_version=firmware,
    )


def parse_macos_chassis(text: str) -> ChassisInfo:
    model = find_key_value(text, "Model Name") or ""
    return ChassisInfo(
        manufacturer="Apple Inc.",
        type_="Desktop" if any(name in model for name in DESKTOP_MODELS) else "Laptop",
        serial=known(find_key_value(text, "Serial Number (system)")),
    )


def parse_macos_motherboard(text: str) -> MotherboardInfo:
    return MotherboardInfo(
        manufacturer="Apple Inc.",
        product_name=known(find_key_value(text, "Model Identifier")),
        version=known(find_key_value(text, "System Firmware Version")),
        serial=known(find_key_value(text, "Serial Number (system)")),
        features="Integrated",
        location="System Board",
        type_="Motherboard",
    )


def parse_macos_system(text: str) -> SystemInfo:
    model = known(find_key_value(text, "Model Name"))
    chip = known(find_key_value(text, "Chip")) or known(find_key_value(text, "Processor Name"))
    product = model
    if model and chip:
        product = f"{model} ({chip})"
    return SystemInfo(
        uuid=known(find_key_value(text, "Hardware UUID")),
        serial=known(find_key_value(text, "Serial Number (system)")),
        product_name=product,
        product_manufacturer="Apple Inc.",
    )


def parse_hostname(text: str) -> str:
    hostname = text.strip()
    if not hostname:
        raise ParseError("Empty hostname output")
    return hostname


def parse_df_output(text: str) -> List[str]:
    """Parse ``df -h --output=source,fstype,size,used,avail,target``."""
    filesystems: List[str] = []
    for line in text.splitlines()[1:]:
        columns = line.split(None, 5)
        if len(columns) < 6:
            continue
        source, fstype, size, used, avail, target = columns
        filesystems.append(f"{source} ({fstype}) - {size} total, {used} used, {avail} available, mounted on {target}")
    return filesystems


def parse_macos_df(text: str) -> List[str]:
    """Keep ``df -h`` rows verbatim, without the header and automounter maps."""
    return [line.strip() for line in text.splitlines()[1:] if line.strip() and not line.startswith("map ")]

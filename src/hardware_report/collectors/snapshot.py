"""Helpers for saving/loading report files as JSON or TOML."""
from __future__ import annotations

import json
import tomllib
from dataclasses import asdict, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Type, TypeVar

import tomli_w

from ..errors import ReportFileError, ReportSerializationError
from ..model import (
    UNKNOWN,
    BiosInfo,
    ChassisInfo,
    CpuInfo,
    CpuTopology,
    GpuDevice,
    GpuInfo,
    GpuVendor,
    HardwareInfo,
    IbInterface,
    InfinibandInfo,
    InterfaceIPs,
    InterfaceType,
    MemoryInfo,
    MemoryModule,
    MotherboardInfo,
    NetworkInfo,
    NetworkInterface,
    NumaDevice,
    NumaNode,
    Report,
    StorageDevice,
    StorageInfo,
    StorageType,
    Summary,
    SystemInfo,
)

T = TypeVar("T")

IDENTITY_SECTIONS = ("system_info", "bios", "chassis", "motherboard")


def report_to_dict(report: Report) -> Dict[str, Any]:
    """Plain-data view of a report; unknown identity facts become ``"Unknown"``."""
    payload = asdict(report, dict_factory=_enum_values)
    summary = payload["summary"]
    for section in IDENTITY_SECTIONS:
        summary[section] = {key: UNKNOWN if value is None else value for key, value in summary[section].items()}
    return payload


def _enum_values(items: List[tuple]) -> Dict[str, Any]:
    return {key: value.value if isinstance(value, Enum) else value for key, value in items}


def dumps_json(report: Report) -> str:
    return json.dumps(report_to_dict(report), indent=2)


def dumps_toml(report: Report) -> str:
    try:
        return tomli_w.dumps(_drop_none(report_to_dict(report)))
    except (TypeError, ValueError) as exc:
        raise ReportSerializationError(f"Unable to encode report as TOML: {exc}") from exc


def _drop_none(value: Any) -> Any:
    # TOML has no null; absent keys fall back to model defaults on load.
    if isinstance(value, dict):
        return {key: _drop_none(item) for key, item in value.items() if item is not None}
    if isinstance(value, list):
        return [_drop_none(item) for item in value]
    return value


def save_report(report: Report, path: Path) -> Path:
    """Write ``report`` in the format implied by the file suffix."""
    text = dumps_toml(report) if path.suffix == ".toml" else dumps_json(report)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise ReportFileError(f"Unable to write {path}: {exc}") from exc
    return path


def load_report(path: Path) -> Report:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ReportFileError(f"Unable to read {path}: {exc}") from exc
    try:
        data = tomllib.loads(text) if path.suffix == ".toml" else json.loads(text)
    except (json.JSONDecodeError, tomllib.TOMLDecodeError) as exc:
        raise ReportSerializationError(f"Malformed report {path}: {exc}") from exc
    return report_from_dict(data)


def report_from_dict(data: Dict[str, Any]) -> Report:
    try:
        return _build_report(data)
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise ReportSerializationError(f"Report document has an unexpected shape: {exc}") from exc


def _build_report(data: Dict[str, Any]) -> Report:
    hardware = data.get("hardware") or {}
    network = data.get("network") or {}
    infiniband = network.get("infiniband")
    return Report(
        hostname=data["hostname"],
        fqdn=data["fqdn"],
        summary=_build_summary(data.get("summary") or {}),
        hardware=HardwareInfo(
            cpu=_record(CpuInfo, hardware.get("cpu") or {}),
            memory=_build_memory(hardware.get("memory") or {}),
            storage=StorageInfo(
                devices=[_build_storage_device(item) for item in (hardware.get("storage") or {}).get("devices", [])]
            ),
            gpus=GpuInfo(devices=[_build_gpu(item) for item in (hardware.get("gpus") or {}).get("devices", [])]),
        ),
        network=NetworkInfo(
            interfaces=[_build_interface(item) for item in network.get("interfaces", [])],
            infiniband=(
                InfinibandInfo(interfaces=[_record(IbInterface, item) for item in infiniband.get("interfaces", [])])
                if isinstance(infiniband, dict)
                else None
            ),
        ),
        os_ip=[_record(InterfaceIPs, item) for item in data.get("os_ip", [])],
        bmc_ip=data.get("bmc_ip"),
        bmc_mac=data.get("bmc_mac"),
    )


def _build_summary(data: Dict[str, Any]) -> Summary:
    values = _known_fields(Summary, data)
    values.update(
        system_info=_identity(SystemInfo, data.get("system_info") or {}),
        bios=_identity(BiosInfo, data.get("bios") or {}),
        chassis=_identity(ChassisInfo, data.get("chassis") or {}),
        motherboard=_identity(MotherboardInfo, data.get("motherboard") or {}),
        numa_topology={key: _build_numa_node(node) for key, node in (data.get("numa_topology") or {}).items()},
        cpu_topology=_record(CpuTopology, data.get("cpu_topology") or {}),
    )
    return Summary(**values)


def _build_memory(data: Dict[str, Any]) -> MemoryInfo:
    values = _known_fields(MemoryInfo, data)
    values["modules"] = [_record(MemoryModule, item) for item in data.get("modules", [])]
    return MemoryInfo(**values)


def _build_storage_device(data: Dict[str, Any]) -> StorageDevice:
    values = _known_fields(StorageDevice, data)
    values["device_type"] = StorageType(data.get("device_type", StorageType.UNKNOWN.value))
    return StorageDevice(**values)


def _build_gpu(data: Dict[str, Any]) -> GpuDevice:
    values = _known_fields(GpuDevice, data)
    values["vendor_enum"] = GpuVendor(data.get("vendor_enum", GpuVendor.UNKNOWN.value))
    return GpuDevice(**values)


def _build_interface(data: Dict[str, Any]) -> NetworkInterface:
    values = _known_fields(NetworkInterface, data)
    values["interface_type"] = InterfaceType(data.get("interface_type", InterfaceType.UNKNOWN.value))
    return NetworkInterface(**values)


def _build_numa_node(data: Dict[str, Any]) -> NumaNode:
    values = _known_fields(NumaNode, data)
    values["devices"] = [_record(NumaDevice, item) for item in data.get("devices", [])]
    return NumaNode(**values)


def _known_fields(cls: Type[Any], data: Dict[str, Any]) -> Dict[str, Any]:
    names = {item.name for item in fields(cls)}
    return {key: value for key, value in data.items() if key in names}


def _record(cls: Type[T], data: Dict[str, Any]) -> T:
    return cls(**_known_fields(cls, data))


def _identity(cls: Type[T], data: Dict[str, Any]) -> T:
    return cls(**{key: None if value == UNKNOWN else value for key, value in _known_fields(cls, data).items()})

"""macOS hardware collectors built on system_profiler."""
from __future__ import annotations

import logging
from typing import Dict, List, Optional

from ..model import (
    BiosInfo,
    ChassisInfo,
    CpuInfo,
    GpuInfo,
    MemoryInfo,
    MotherboardInfo,
    NetworkInfo,
    NumaNode,
    StorageInfo,
    SystemInfo,
)
from ..parsers import cpu as cpu_parsers
from ..parsers import gpu as gpu_parsers
from ..parsers import memory as memory_parsers
from ..parsers import network as network_parsers
from ..parsers import storage as storage_parsers
from ..parsers import system as system_parsers
from .base import SystemInfoProvider

LOGGER = logging.getLogger(__name__)

REQUIRED_COMMANDS = ("system_profiler", "sysctl", "ioreg", "hostname", "df")


class MacOSSystemInfoProvider(SystemInfoProvider):
    required_commands = REQUIRED_COMMANDS

    def _profile(self, data_type: str, *extra: str) -> Optional[str]:
        return self._run_optional("system_profiler", data_type, *extra)

    def _hardware_overview(self) -> str:
        return self._profile("SPHardwareDataType") or ""

    def get_cpu_info(self) -> CpuInfo:
        cpu = cpu_parsers.parse_macos_hardware_cpu(self._hardware_overview())
        sysctl = self._run_optional("sysctl", "hw")
        if sysctl:
            cpu = cpu_parsers.apply_sysctl_hw(cpu, cpu_parsers.parse_sysctl_hw(sysctl))
        return cpu

    def get_memory_info(self) -> MemoryInfo:
        text = self._profile("SPMemoryDataType")
        return memory_parsers.parse_macos_memory(text) if text else MemoryInfo()

    def get_storage_info(self) -> StorageInfo:
        devices = []
        text = self._profile("SPStorageDataType", "-detailLevel", "full")
        if text:
            devices = storage_parsers.parse_macos_storage(text)
        if not devices:
            info = self._run_optional("diskutil", "info", "disk0")
            device = storage_parsers.parse_diskutil_info(info) if info else None
            if device is not None:
                devices = [device]
        return StorageInfo(devices=storage_parsers.finalize_storage_devices(devices))

    def get_gpu_info(self) -> GpuInfo:
        return GpuInfo(devices=gpu_parsers.parse_macos_displays(self._profile("SPDisplaysDataType") or ""))

    def get_network_info(self) -> NetworkInfo:
        text = self._run_optional("ifconfig")
        return NetworkInfo(interfaces=network_parsers.parse_ifconfig(text) if text else [])

    def get_system_info(self) -> SystemInfo:
        return system_parsers.parse_macos_system(self._hardware_overview())

    def get_bios_info(self) -> BiosInfo:
        return system_parsers.parse_macos_bios(self._hardware_overview())

    def get_chassis_info(self) -> ChassisInfo:
        return system_parsers.parse_macos_chassis(self._hardware_overview())

    def get_motherboard_info(self) -> MotherboardInfo:
        return system_parsers.parse_macos_motherboard(self._hardware_overview())

    def get_numa_topology(self) -> Dict[str, NumaNode]:
        return {}

    def get_filesystems(self) -> List[str]:
        text = self._run_optional("df", "-h")
        return system_parsers.parse_macos_df(text) if text else []

    def get_hostname(self) -> str:
        return system_parsers.parse_hostname(self._run("hostname"))

    def get_fqdn(self) -> str:
        return self.get_hostname()

    def has_required_privileges(self) -> bool:
        return True

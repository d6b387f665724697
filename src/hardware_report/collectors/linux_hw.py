"""Linux hardware collectors."""
from __future__ import annotations

import logging
import os
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

import psutil

from ..errors import ParseError
from ..model import (
    UNKNOWN,
    BiosInfo,
    ChassisInfo,
    CpuInfo,
    GpuDevice,
    GpuInfo,
    GpuVendor,
    InfinibandInfo,
    InterfaceType,
    MemoryInfo,
    MotherboardInfo,
    NetworkInfo,
    NetworkInterface,
    NumaNode,
    StorageDevice,
    StorageInfo,
    StorageType,
    SystemInfo,
)
from ..parsers import cpu as cpu_parsers
from ..parsers import gpu as gpu_parsers
from ..parsers import memory as memory_parsers
from ..parsers import network as network_parsers
from ..parsers import numa as numa_parsers
from ..parsers import storage as storage_parsers
from ..parsers import system as system_parsers
from ..parsers.common import bytes_to_human_readable, pci_vendor_name
from ..util.subprocess import CommandRunner
from ..util.sysfs import SysfsReader
from .base import SystemInfoProvider

LOGGER = logging.getLogger(__name__)

REQUIRED_COMMANDS = ("lscpu", "dmidecode", "free", "lsblk", "ip", "hostname", "df")
LSBLK_COLUMNS = "NAME,SIZE,ROTA,MODEL,SERIAL,WWN,TRAN,TYPE"
DF_COLUMNS = "source,fstype,size,used,avail,target"


class LinuxSystemInfoProvider(SystemInfoProvider):
    required_commands = REQUIRED_COMMANDS

    def __init__(
        self,
        runner: CommandRunner,
        reader: Optional[SysfsReader] = None,
        *,
        skip_sudo: bool = False,
    ) -> None:
        super().__init__(runner, skip_sudo=skip_sudo)
        self.reader = reader or SysfsReader()

    # CPU / memory

    def get_cpu_info(self) -> CpuInfo:
        cpu: Optional[CpuInfo] = None
        text = self._run_optional("lscpu", "-J")
        if text is not None:
            cpu = cpu_parsers.parse_lscpu_json(text)
        else:
            plain = self._run_optional("lscpu")
            if plain is not None:
                cpu = cpu_parsers.parse_lscpu_text(plain)

        dmi = self._dmidecode("processor")
        if dmi is not None:
            processor = cpu_parsers.parse_dmidecode_processor(dmi)
            # CpuInfo() defaults to one core and one thread, which would shadow dmidecode.
            cpu = processor if cpu is None else cpu_parsers.combine_cpu_info(cpu, processor)
        return cpu if cpu is not None else CpuInfo()

    def get_memory_info(self) -> MemoryInfo:
        total = UNKNOWN
        free = self._run_optional("free", "-b")
        if free is not None:
            total = memory_parsers.parse_free_total(free, unit=1)
        else:
            meminfo = self.reader.read_optional("/proc/meminfo")
            if meminfo is not None:
                total = bytes_to_human_readable(memory_parsers.parse_meminfo_total(meminfo))

        dmi = self._dmidecode("memory")
        modules = memory_parsers.parse_dmidecode_memory(dmi) if dmi is not None else []
        return MemoryInfo(
            total=total,
            type_=memory_parsers.determine_memory_type(modules),
            speed=memory_parsers.determine_memory_speed(modules),
            modules=modules,
        )

    # Storage

    def get_storage_info(self) -> StorageInfo:
        sysfs_devices = self._collect_sysfs_storage()
        lsblk_devices: List[StorageDevice] = []
        text = self._run_optional("lsblk", "-J", "-b", "-d", "-o", LSBLK_COLUMNS)
        if text is not None:
            lsblk_devices = storage_parsers.parse_lsblk_json(text)

        devices = storage_parsers.merge_storage_sources(sysfs_devices, lsblk_devices)
        if not devices:
            LOGGER.debug("No block devices from sysfs or lsblk; falling back to psutil")
            devices = self._collect_psutil_storage()
        return StorageInfo(devices=storage_parsers.finalize_storage_devices(devices))

    def _collect_sysfs_storage(self) -> List[StorageDevice]:
        devices: List[StorageDevice] = []
        for name in self.reader.list_dir("/sys/block"):
            if storage_parsers.classify_storage_device(name, None) is StorageType.VIRTUAL:
                continue
            base = f"/sys/block/{name}"
            size_text = self.reader.read_optional(f"{base}/size")
            if size_text is None:
                continue
            size_bytes = storage_parsers.parse_sysfs_size(size_text)
            if size_bytes < storage_parsers.MIN_DEVICE_BYTES:
                continue

            serial = self.reader.read_optional(f"{base}/device/serial")
            firmware = self.reader.read_optional(f"{base}/device/firmware_rev")
            if name.startswith("nvme"):
                controller = f"/sys/class/nvme/{storage_parsers.nvme_controller(name)}"
                serial = serial or self.reader.read_optional(f"{controller}/serial")
                firmware = firmware or self.reader.read_optional(f"{controller}/firmware_rev")

            devices.append(
                storage_parsers.build_storage_device(
                    name,
                    size_bytes,
                    storage_parsers.parse_sysfs_rotational(self.reader.read_optional(f"{base}/queue/rotational")),
                    model=self.reader.read_optional(f"{base}/device/model") or "",
                    serial_number=serial,
                    firmware_version=firmware,
                    detection_method="sysfs",
                )
            )
        return devices

    def _collect_psutil_storage(self) -> List[StorageDevice]:
        sizes: Dict[str, int] = {}
        for partition in psutil.disk_partitions(all=False):
            if not partition.device.startswith("/dev/"):
                continue
            name = storage_parsers.parent_disk_name(os.path.basename(partition.device))
            try:
                usage = psutil.disk_usage(partition.mountpoint)
            except OSError as exc:
                LOGGER.debug("Unable to stat %s: %s", partition.mountpoint, exc)
                continue
            sizes[name] = sizes.get(name, 0) + usage.total

        return [
            storage_parsers.build_storage_device(
                name,
                size_bytes,
                storage_parsers.parse_sysfs_rotational(self.reader.read_optional(f"/sys/block/{name}/queue/rotational")),
                detection_method="sysinfo",
            )
            for name, size_bytes in sizes.items()
        ]

    # GPU

    def get_gpu_info(self) -> GpuInfo:
        devices: List[GpuDevice] = []
        if self.runner.is_command_available("nvidia-smi"):
            text = self._run_optional(
                "nvidia-smi",
                "--query-gpu=" + ",".join(gpu_parsers.NVIDIA_QUERY_FIELDS),
                "--format=csv,noheader,nounits",
            )
            if text:
                devices = gpu_parsers.parse_nvidia_smi_csv(text)
        if not devices and self.runner.is_command_available("lspci"):
            text = self._run_optional("lspci", "-nn")
            if text:
                devices = gpu_parsers.parse_lspci_gpus(text)
        return GpuInfo(devices=[self._enrich_gpu(device) for device in devices])

    def _enrich_gpu(self, device: GpuDevice) -> GpuDevice:
        if not device.pci_bus_id:
            return device
        base = f"/sys/bus/pci/devices/{device.pci_bus_id}"
        updates = {"numa_node": _numa_node(self.reader.read_optional(f"{base}/numa_node"))}
        if device.pci_id == UNKNOWN:
            pci_id = self._pci_id(base)
            if pci_id:
                updates["pci_id"] = pci_id
                vendor = GpuVendor.from_pci_vendor(pci_id.split(":")[0])
                if vendor is not GpuVendor.UNKNOWN:
                    updates["vendor"] = vendor.value
                    updates["vendor_enum"] = vendor
        return replace(device, **updates)

    def _pci_id(self, base: str) -> Optional[str]:
        vendor = self.reader.read_optional(f"{base}/vendor")
        device = self.reader.read_optional(f"{base}/device")
        if not vendor or not device:
            return None
        return f"{vendor.lower().removeprefix('0x')}:{device.lower().removeprefix('0x')}"

    # Network

    def get_network_info(self) -> NetworkInfo:
        text = self._run_optional("ip", "-j", "addr", "show")
        if text is not None:
            interfaces = network_parsers.parse_ip_addr_json(text)
        else:
            interfaces = self._collect_sysfs_interfaces()

        lspci_available = self.runner.is_command_available("lspci")
        enriched = [
            self._enrich_interface(interface, lspci_available)
            for interface in interfaces
            if interface.interface_type is not InterfaceType.LOOPBACK
        ]
        return NetworkInfo(interfaces=enriched, infiniband=self._collect_infiniband())

    def _collect_sysfs_interfaces(self) -> List[NetworkInterface]:
        interfaces = []
        for name in self.reader.list_dir("/sys/class/net"):
            interface_type = network_parsers.classify_interface(name)
            interfaces.append(
                NetworkInterface(
                    name=name,
                    mac=self.reader.read_optional(f"/sys/class/net/{name}/address") or UNKNOWN,
                    type_=interface_type.value,
                    interface_type=interface_type,
                )
            )
        return interfaces

    def _enrich_interface(self, interface: NetworkInterface, lspci_available: bool) -> NetworkInterface:
        base = f"/sys/class/net/{interface.name}"
        updates: Dict[str, object] = {}

        operstate = self.reader.read_optional(f"{base}/operstate")
        if operstate is not None:
            updates["is_up"] = operstate.lower() == "up"
        speed = _int_or_none(self.reader.read_optional(f"{base}/speed"))
        if speed is not None and speed > 0:
            updates["speed_mbps"] = speed
            updates["speed"] = network_parsers.format_link_speed(speed)
        mtu = _int_or_none(self.reader.read_optional(f"{base}/mtu"))
        if mtu is not None:
            updates["mtu"] = mtu
        carrier = self.reader.read_optional(f"{base}/carrier")
        if carrier is not None:
            updates["carrier"] = carrier == "1"

        device_link = self.reader.read_link(f"{base}/device")
        is_virtual = device_link is None or network_parsers.is_virtual_name(interface.name)
        updates["is_virtual"] = is_virtual
        if not is_virtual:
            driver_link = self.reader.read_link(f"{base}/device/driver")
            if driver_link:
                driver = os.path.basename(driver_link)
                updates["driver"] = driver
                updates["driver_version"] = self.reader.read_optional(f"/sys/module/{driver}/version")
            pci_id = self._pci_id(f"{base}/device")
            if pci_id:
                updates["pci_id"] = pci_id
                updates["vendor"] = pci_vendor_name(pci_id.split(":")[0])
            updates["numa_node"] = _numa_node(self.reader.read_optional(f"{base}/device/numa_node"))
            if lspci_available and pci_id:
                model = self._pci_model(os.path.basename(device_link))
                if model:
                    updates["model"] = model
        return replace(interface, **updates)

    def _pci_model(self, address: str) -> Optional[str]:
        text = self._run_optional("lspci", "-vmm", "-s", address)
        if not text:
            return None
        return network_parsers.parse_lspci_vmm(text).get("Device")

    def _collect_infiniband(self) -> Optional[InfinibandInfo]:
        if not self.runner.is_command_available("ibstat"):
            return None
        text = self._run_optional("ibstat")
        ports = network_parsers.parse_ibstat(text) if text else None
        return InfinibandInfo(interfaces=ports) if ports else None

    # Identity

    def get_system_info(self) -> SystemInfo:
        text = self._dmidecode("system")
        return system_parsers.parse_dmidecode_system(text) if text else SystemInfo()

    def get_bios_info(self) -> BiosInfo:
        text = self._dmidecode("bios")
        return system_parsers.parse_dmidecode_bios(text) if text else BiosInfo()

    def get_chassis_info(self) -> ChassisInfo:
        text = self._dmidecode("chassis")
        return system_parsers.parse_dmidecode_chassis(text) if text else ChassisInfo()

    def get_motherboard_info(self) -> MotherboardInfo:
        text = self._dmidecode("baseboard")
        return system_parsers.parse_dmidecode_baseboard(text) if text else MotherboardInfo()

    def get_bmc_info(self) -> Tuple[Optional[str], Optional[str]]:
        if not self.runner.is_command_available("ipmitool"):
            return None, None
        text = self._run_optional("ipmitool", "lan", "print", privileged=True)
        if not text:
            return None, None
        return network_parsers.parse_ipmitool_lan(text)

    def _dmidecode(self, table: str) -> Optional[str]:
        return self._run_optional("dmidecode", "-t", table, privileged=True)

    # Topology / filesystems / host

    def get_numa_topology(self) -> Dict[str, NumaNode]:
        if not self.runner.is_command_available("numactl"):
            return {}
        text = self._run_optional("numactl", "--hardware")
        if not text:
            return {}
        try:
            nodes = numa_parsers.parse_numactl_hardware(text)
            mapping_text = self._run_optional("lscpu", "-p=cpu,node")
            if mapping_text:
                nodes = numa_parsers.merge_cpu_node_map(nodes, numa_parsers.parse_cpu_node_map(mapping_text))
        except ParseError as exc:
            LOGGER.debug("Ignoring unparseable NUMA data: %s", exc)
            return {}
        return nodes

    def get_filesystems(self) -> List[str]:
        text = self._run_optional("df", "-h", f"--output={DF_COLUMNS}")
        return system_parsers.parse_df_output(text) if text else []

    def get_hostname(self) -> str:
        return system_parsers.parse_hostname(self._run("hostname"))

    def get_fqdn(self) -> str:
        text = self._run_optional("hostname", "-f")
        if text and text.strip():
            return text.strip()
        return self.get_hostname()

    def has_required_privileges(self) -> bool:
        return self.runner.has_elevated_privileges()


def _int_or_none(value: Optional[str]) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None


def _numa_node(value: Optional[str]) -> Optional[int]:
    node = _int_or_none(value)
    return node if node is not None and node >= 0 else None

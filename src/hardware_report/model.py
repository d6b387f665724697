"""Typed data models for hardware reports."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

UNKNOWN = "Unknown"


class StorageType(str, Enum):
    NVME = "NVMe"
    SSD = "SSD"
    HDD = "HDD"
    EMMC = "eMMC"
    VIRTUAL = "Virtual"
    UNKNOWN = "Unknown"


class GpuVendor(str, Enum):
    NVIDIA = "NVIDIA"
    AMD = "AMD"
    INTEL = "Intel"
    APPLE = "Apple"
    UNKNOWN = "Unknown"

    @classmethod
    def from_pci_vendor(cls, vendor_id: str) -> "GpuVendor":
        return _GPU_VENDOR_IDS.get(vendor_id.lower().removeprefix("0x"), cls.UNKNOWN)


_GPU_VENDOR_IDS = {
    "10de": GpuVendor.NVIDIA,
    "1002": GpuVendor.AMD,
    "8086": GpuVendor.INTEL,
    "106b": GpuVendor.APPLE,
}


class InterfaceType(str, Enum):
    ETHERNET = "Ethernet"
    WIRELESS = "Wireless"
    LOOPBACK = "Loopback"
    BRIDGE = "Bridge"
    VLAN = "Vlan"
    BOND = "Bond"
    VETH = "Veth"
    TUNTAP = "TunTap"
    INFINIBAND = "Infiniband"
    MACVLAN = "Macvlan"
    UNKNOWN = "Unknown"


@dataclass
class CpuInfo:
    model: str = "Unknown CPU"
    cores: int = 1
    threads: int = 1
    sockets: int = 1
    speed: str = UNKNOWN
    vendor: Optional[str] = None
    architecture: Optional[str] = None
    min_frequency_mhz: Optional[float] = None
    max_frequency_mhz: Optional[float] = None
    l1d_cache: Optional[str] = None
    l1i_cache: Optional[str] = None
    l2_cache: Optional[str] = None
    l3_cache: Optional[str] = None
    flags: List[str] = field(default_factory=list)
    microarchitecture: Optional[str] = None
    numa_nodes: Optional[int] = None


@dataclass
class MemoryModule:
    size: str = UNKNOWN
    type_: str = UNKNOWN
    speed: str = UNKNOWN
    location: str = UNKNOWN
    manufacturer: str = UNKNOWN
    serial: str = UNKNOWN


@dataclass
class MemoryInfo:
    total: str = UNKNOWN
    type_: str = UNKNOWN
    speed: str = UNKNOWN
    modules: List[MemoryModule] = field(default_factory=list)


@dataclass
class StorageDevice:
    name: str
    device_path: str = ""
    device_type: StorageType = StorageType.UNKNOWN
    type_: str = UNKNOWN
    size_bytes: int = 0
    size_gb: float = 0.0
    size: str = "0 B"
    model: str = ""
    serial_number: Optional[str] = None
    firmware_version: Optional[str] = None
    wwn: Optional[str] = None
    interface: str = UNKNOWN
    is_rotational: bool = False
    detection_method: str = ""


@dataclass
class StorageInfo:
    devices: List[StorageDevice] = field(default_factory=list)


@dataclass
class GpuDevice:
    index: int
    name: str
    uuid: str
    memory: str = UNKNOWN
    memory_total_mb: int = 0
    memory_free_mb: Optional[int] = None
    pci_id: str = UNKNOWN
    pci_bus_id: Optional[str] = None
    vendor: str = UNKNOWN
    vendor_enum: GpuVendor = GpuVendor.UNKNOWN
    numa_node: Optional[int] = None
    driver_version: Optional[str] = None
    compute_capability: Optional[str] = None
    detection_method: str = ""


@dataclass
class GpuInfo:
    devices: List[GpuDevice] = field(default_factory=list)


@dataclass
class NetworkInterface:
    name: str
    mac: str = UNKNOWN
    ip: str = ""
    prefix: str = ""
    speed: Optional[str] = None
    speed_mbps: Optional[int] = None
    type_: str = UNKNOWN
    interface_type: InterfaceType = InterfaceType.UNKNOWN
    vendor: str = UNKNOWN
    model: str = UNKNOWN
    pci_id: str = UNKNOWN
    numa_node: Optional[int] = None
    driver: Optional[str] = None
    driver_version: Optional[str] = None
    mtu: int = 1500
    is_up: bool = False
    is_virtual: bool = False
    carrier: Optional[bool] = None


@dataclass
class IbInterface:
    name: str
    port: int
    state: str
    rate: str


@dataclass
class InfinibandInfo:
    interfaces: List[IbInterface] = field(default_factory=list)


@dataclass
class NetworkInfo:
    interfaces: List[NetworkInterface] = field(default_factory=list)
    infiniband: Optional[InfinibandInfo] = None


@dataclass
class NumaDevice:
    type_: str
    pci_id: str
    name: str


@dataclass
class NumaNode:
    id: int
    cpus: List[int] = field(default_factory=list)
    memory: str = UNKNOWN
    devices: List[NumaDevice] = field(default_factory=list)
    distances: Dict[str, int] = field(default_factory=dict)


@dataclass
class InterfaceIPs:
    interface: str
    ip_addresses: List[str] = field(default_factory=list)


# Identity records keep None for unknown facts; documents render them as "Unknown".


@dataclass
class SystemInfo:
    uuid: Optional[str] = None
    serial: Optional[str] = None
    product_name: Optional[str] = None
    product_manufacturer: Optional[str] = None


@dataclass
class BiosInfo:
    vendor: Optional[str] = None
    version: Optional[str] = None
    release_date: Optional[str] = None
    firmware_version: Optional[str] = None


@dataclass
class ChassisInfo:
    manufacturer: Optional[str] = None
    type_: Optional[str] = None
    serial: Optional[str] = None


@dataclass
class MotherboardInfo:
    manufacturer: Optional[str] = None
    product_name: Optional[str] = None
    version: Optional[str] = None
    serial: Optional[str] = None
    features: Optional[str] = None
    location: Optional[str] = None
    type_: Optional[str] = None


@dataclass
class CpuTopology:
    total_cores: int = 1
    total_threads: int = 1
    sockets: int = 1
    cores_per_socket: int = 1
    threads_per_core: int = 1
    numa_nodes: int = 1
    cpu_model: str = "Unknown CPU"


@dataclass
class Summary:
    system_info: SystemInfo = field(default_factory=SystemInfo)
    total_memory: str = UNKNOWN
    memory_config: str = UNKNOWN
    total_storage: str = "0 GB"
    total_storage_tb: float = 0.0
    filesystems: List[str] = field(default_factory=list)
    bios: BiosInfo = field(default_factory=BiosInfo)
    chassis: ChassisInfo = field(default_factory=ChassisInfo)
    motherboard: MotherboardInfo = field(default_factory=MotherboardInfo)
    total_gpus: int = 0
    total_nics: int = 0
    numa_topology: Dict[str, NumaNode] = field(default_factory=dict)
    cpu_topology: CpuTopology = field(default_factory=CpuTopology)
    cpu_summary: str = ""


@dataclass
class HardwareInfo:
    cpu: CpuInfo = field(default_factory=CpuInfo)
    memory: MemoryInfo = field(default_factory=MemoryInfo)
    storage: StorageInfo = field(default_factory=StorageInfo)
    gpus: GpuInfo = field(default_factory=GpuInfo)


@dataclass
class Report:
    hostname: str
    fqdn: str
    summary: Summary = field(default_factory=Summary)
    hardware: HardwareInfo = field(default_factory=HardwareInfo)
    network: NetworkInfo = field(default_factory=NetworkInfo)
    os_ip: List[InterfaceIPs] = field(default_factory=list)
    bmc_ip: Optional[str] = None
    bmc_mac: Optional[str] = None

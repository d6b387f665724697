"""Derived summary fields computed from collected components."""
from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, List, Sequence

from .model import (
    UNKNOWN,
    BiosInfo,
    ChassisInfo,
    CpuInfo,
    CpuTopology,
    GpuDevice,
    MemoryInfo,
    MotherboardInfo,
    NetworkInterface,
    NumaDevice,
    NumaNode,
    StorageDevice,
    Summary,
    SystemInfo,
)

TIB = 1024**4
GIB = 1024**3


def total_storage_bytes(devices: Iterable[StorageDevice]) -> int:
    return sum(device.size_bytes for device in devices)


def total_storage_tb(devices: Iterable[StorageDevice]) -> float:
    return total_storage_bytes(devices) / TIB


def format_total_storage(devices: Sequence[StorageDevice]) -> str:
    total = total_storage_bytes(devices)
    if total >= TIB:
        return f"{total / TIB:.1f} TB"
    return f"{total / GIB:.0f} GB"


def build_cpu_topology(cpu: CpuInfo, numa_nodes: int) -> CpuTopology:
    return CpuTopology(
        total_cores=cpu.cores * cpu.sockets,
        total_threads=cpu.cores * cpu.sockets * cpu.threads,
        sockets=cpu.sockets,
        cores_per_socket=cpu.cores,
        threads_per_core=cpu.threads,
        numa_nodes=numa_nodes,
        cpu_model=cpu.model,
    )


def _plural(count: int, noun: str, suffix: str = "") -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}{suffix}"


def format_cpu_summary(topology: CpuTopology) -> str:
    parts = [
        _plural(topology.sockets, "Socket"),
        _plural(topology.cores_per_socket, "Core", "/Socket"),
        _plural(topology.threads_per_core, "Thread", "/Core"),
        _plural(topology.numa_nodes, "NUMA Node"),
    ]
    return f"{topology.cpu_model} ({', '.join(parts)})"


def count_numa_nodes(numa: Dict[str, NumaNode], cpu: CpuInfo) -> int:
    """Detected nodes, else the CPU table's count, else one implicit node."""
    return len(numa) or cpu.numa_nodes or 1


def memory_config(memory: MemoryInfo) -> str:
    return f"{memory.type_} @ {memory.speed}"


def attach_numa_devices(
    numa: Dict[str, NumaNode],
    gpus: Sequence[GpuDevice],
    interfaces: Sequence[NetworkInterface],
) -> Dict[str, NumaNode]:
    """Return copies of the nodes listing the GPUs and NICs local to each."""
    devices: Dict[str, List[NumaDevice]] = {key: list(node.devices) for key, node in numa.items()}
    for gpu in gpus:
        if gpu.numa_node is not None and str(gpu.numa_node) in devices:
            devices[str(gpu.numa_node)].append(NumaDevice(type_="GPU", pci_id=gpu.pci_id, name=gpu.name))
    for interface in interfaces:
        if interface.numa_node is not None and str(interface.numa_node) in devices:
            devices[str(interface.numa_node)].append(
                NumaDevice(type_="NIC", pci_id=interface.pci_id, name=interface.name)
            )
    return {key: replace(node, devices=devices[key]) for key, node in numa.items()}


def build_summary(
    *,
    cpu: CpuInfo,
    memory: MemoryInfo,
    storage: Sequence[StorageDevice],
    gpus: Sequence[GpuDevice],
    interfaces: Sequence[NetworkInterface],
    system_info: SystemInfo,
    bios: BiosInfo,
    chassis: ChassisInfo,
    motherboard: MotherboardInfo,
    numa: Dict[str, NumaNode],
    filesystems: List[str],
) -> Summary:
    topology = build_cpu_topology(cpu, count_numa_nodes(numa, cpu))
    return Summary(
        system_info=system_info,
        total_memory=memory.total or UNKNOWN,
        memory_config=memory_config(memory),
        total_storage=format_total_storage(storage),
        total_storage_tb=total_storage_tb(storage),
        filesystems=list(filesystems),
        bios=bios,
        chassis=chassis,
        motherboard=motherboard,
        total_gpus=len(gpus),
        total_nics=len(interfaces),
        numa_topology=attach_numa_devices(numa, gpus, interfaces),
        cpu_topology=topology,
        cpu_summary=format_cpu_summary(topology),
    )

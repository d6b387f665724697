from __future__ import annotations

import json
import tomllib
from pathlib import Path

import pytest

from hardware_report.collectors.snapshot import (
    dumps_json,
    dumps_toml,
    load_report,
    report_from_dict,
    report_to_dict,
    save_report,
)
from hardware_report.errors import ReportFileError, ReportSerializationError
from hardware_report.model import (
    BiosInfo,
    ChassisInfo,
    CpuInfo,
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


def _sample_report() -> Report:
    storage = StorageInfo(
        devices=[
            StorageDevice(
                name="nvme0n1",
                device_path="/dev/nvme0n1",
                device_type=StorageType.NVME,
                type_="NVMe",
                size_bytes=1920383410176,
                size_gb=1788.51,
                size="1.7 TB",
                model="SAMSUNG MZQL21T9HCJR-00A07",
                serial_number="S64GNE0R123456",
                interface="NVMe",
                detection_method="sysfs",
            )
        ]
    )
    return Report(
        hostname="node01",
        fqdn="node01.example.com",
        summary=Summary(
            system_info=SystemInfo(serial="ABC1234", product_name="PowerEdge R750"),
            total_memory="64.0 GB",
            memory_config="DDR4 @ 3200 MT/s",
            total_storage="2 TB",
            total_storage_tb=1920383410176 / 1024**4,
            filesystems=["/dev/nvme0n1p2 (ext4) - 1.8T total, 412G used, 1.3T available, mounted on /"],
            bios=BiosInfo(vendor="Dell Inc.", version="1.9.2"),
            chassis=ChassisInfo(serial="ABC1234"),
            total_gpus=1,
            total_nics=1,
            numa_topology={
                "0": NumaNode(
                    id=0,
                    cpus=[0, 1],
                    memory="62.7 GB",
                    devices=[NumaDevice(type_="NIC", pci_id="8086:1593", name="eno1")],
                    distances={"0": 10, "1": 21},
                )
            },
            cpu_summary="Xeon (1 Socket, 16 Cores/Socket, 2 Threads/Core, 1 NUMA Node)",
        ),
        hardware=HardwareInfo(
            cpu=CpuInfo(model="Xeon", cores=16, threads=2, max_frequency_mhz=3200.0, flags=["avx2"]),
            memory=MemoryInfo(total="64.0 GB", type_="DDR4", modules=[MemoryModule(size="32 GB", location="DIMM_A1")]),
            storage=storage,
            gpus=GpuInfo(
                devices=[
                    GpuDevice(
                        index=0,
                        name="NVIDIA A100",
                        uuid="GPU-1",
                        memory="80.0 GB",
                        memory_total_mb=81920,
                        pci_bus_id="0000:01:00.0",
                        vendor="NVIDIA",
                        vendor_enum=GpuVendor.NVIDIA,
                    )
                ]
            ),
        ),
        network=NetworkInfo(
            interfaces=[
                NetworkInterface(
                    name="eno1",
                    mac="b4:96:91:aa:bb:cc",
                    ip="10.0.0.15",
                    prefix="24",
                    speed="25 Gbps",
                    speed_mbps=25000,
                    type_="Ethernet",
                    interface_type=InterfaceType.ETHERNET,
                    numa_node=0,
                    carrier=True,
                )
            ],
            infiniband=InfinibandInfo(interfaces=[IbInterface(name="mlx5_0", port=1, state="Active", rate="200")]),
        ),
        os_ip=[InterfaceIPs(interface="eno1", ip_addresses=["10.0.0.15"])],
    )


def test_report_to_dict_renders_unknown_identity_fields() -> None:
    data = report_to_dict(_sample_report())

    assert data["summary"]["system_info"]["uuid"] == "Unknown"
    assert data["summary"]["chassis"]["type_"] == "Unknown"
    assert data["summary"]["system_info"]["serial"] == "ABC1234"
    assert data["hardware"]["storage"]["devices"][0]["device_type"] == "NVMe"
    assert data["network"]["interfaces"][0]["interface_type"] == "Ethernet"
    assert data["bmc_ip"] is None


@pytest.mark.parametrize("suffix", [".json", ".toml"])
def test_save_and_load_round_trip(tmp_path: Path, suffix: str) -> None:
    report = _sample_report()
    destination = tmp_path / "nested" / "dir" / f"report{suffix}"

    save_report(report, destination)

    assert destination.exists()
    assert load_report(destination) == report


def test_toml_omits_null_values() -> None:
    data = tomllib.loads(dumps_toml(_sample_report()))

    assert "bmc_ip" not in data
    assert "memory_free_mb" not in data["hardware"]["gpus"]["devices"][0]
    assert data["summary"]["bios"]["release_date"] == "Unknown"


def test_json_is_pretty_printed() -> None:
    text = dumps_json(_sample_report())

    assert text.startswith('{\n  "hostname": "node01"')
    assert json.loads(text)["summary"]["numa_topology"]["0"]["distances"] == {"0": 10, "1": 21}


def test_malformed_file_is_a_serialization_error(tmp_path: Path) -> None:
    broken = tmp_path / "report.json"
    broken.write_text("{not json")

    with pytest.raises(ReportSerializationError):
        load_report(broken)


def test_wrong_shape_is_a_serialization_error() -> None:
    with pytest.raises(ReportSerializationError):
        report_from_dict({"fqdn": "missing-hostname"})


def test_missing_file_is_a_file_error(tmp_path: Path) -> None:
    with pytest.raises(ReportFileError):
        load_report(tmp_path / "absent.toml")

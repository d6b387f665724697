from __future__ import annotations

import time
from typing import Dict, List

import pytest

from hardware_report.collectors.base import SystemInfoProvider
from hardware_report.config import ReportConfig
from hardware_report.errors import ParseError, ParsingFailed, ReportGenerationError, ReportValidationError
from hardware_report.model import (
    BiosInfo,
    ChassisInfo,
    CpuInfo,
    CpuTopology,
    GpuDevice,
    GpuInfo,
    InterfaceIPs,
    MemoryInfo,
    MotherboardInfo,
    NetworkInfo,
    NetworkInterface,
    NumaNode,
    StorageDevice,
    StorageInfo,
    SystemInfo,
)
from hardware_report.parsers.storage import build_storage_device, finalize_storage_devices
from hardware_report.report import ReportGenerator
from hardware_report.summary import build_cpu_topology, format_cpu_summary, format_total_storage
from hardware_report.util.subprocess import CommandRunner

TIB = 1024**4


class StubProvider(SystemInfoProvider):
    def __init__(self, runner, failing: str = "") -> None:
        super().__init__(runner)
        self.failing = failing

    def _check(self, name: str) -> None:
        if name == self.failing:
            raise ParseError(f"{name} output was unreadable")

    def get_cpu_info(self) -> CpuInfo:
        self._check("cpu")
        return CpuInfo(model="Xeon", cores=16, threads=2, sockets=2)

    def get_memory_info(self) -> MemoryInfo:
        return MemoryInfo(total="256.0 GB", type_="DDR4", speed="3200 MT/s")

    def get_storage_info(self) -> StorageInfo:
        return StorageInfo(
            devices=finalize_storage_devices(
                [
                    build_storage_device("nvme0n1", 2 * TIB, False),
                    build_storage_device("sda", TIB // 2, True),
                ]
            )
        )

    def get_gpu_info(self) -> GpuInfo:
        self._check("gpu")
        return GpuInfo(devices=[GpuDevice(index=0, name="A100", uuid="GPU-1", pci_id="10de:20b0", numa_node=1)])

    def get_network_info(self) -> NetworkInfo:
        return NetworkInfo(interfaces=[NetworkInterface(name="eno1", pci_id="8086:1593", numa_node=0)])

    def get_system_info(self) -> SystemInfo:
        return SystemInfo(serial="ABC1234", product_name="PowerEdge R750")

    def get_bios_info(self) -> BiosInfo:
        return BiosInfo(vendor="Dell Inc.")

    def get_chassis_info(self) -> ChassisInfo:
        return ChassisInfo(serial="ABC1234")

    def get_motherboard_info(self) -> MotherboardInfo:
        return MotherboardInfo()

    def get_numa_topology(self) -> Dict[str, NumaNode]:
        return {"0": NumaNode(id=0, cpus=[0, 1]), "1": NumaNode(id=1, cpus=[2, 3])}

    def get_filesystems(self) -> List[str]:
        return ["/dev/nvme0n1p2 (ext4) - 1.8T total, 412G used, 1.3T available, mounted on /"]

    def get_hostname(self) -> str:
        self._check("hostname")
        return "node01"

    def get_fqdn(self) -> str:
        return "node01.example.com"

    def get_interface_ips(self) -> List[InterfaceIPs]:
        return [InterfaceIPs(interface="eno1", ip_addresses=["10.0.0.15"])]

    def get_bmc_info(self):
        return "10.10.0.42", "d0:8e:79:01:02:03"

    def has_required_privileges(self) -> bool:
        return True


def test_generate_report_derives_summary(fake_runner) -> None:
    report = ReportGenerator(StubProvider(fake_runner())).generate_report()

    summary = report.summary
    assert report.hostname == "node01"
    assert report.fqdn == "node01.example.com"
    assert summary.total_storage_tb == pytest.approx(2.5)
    assert summary.total_storage_tb == sum(device.size_bytes for device in report.hardware.storage.devices) / 2**40
    assert summary.total_storage == "2.5 TB"
    assert summary.total_gpus == 1
    assert summary.total_nics == 1
    assert summary.memory_config == "DDR4 @ 3200 MT/s"
    assert summary.cpu_topology == CpuTopology(
        total_cores=32,
        total_threads=64,
        sockets=2,
        cores_per_socket=16,
        threads_per_core=2,
        numa_nodes=2,
        cpu_model="Xeon",
    )
    assert summary.cpu_summary == "Xeon (2 Sockets, 16 Cores/Socket, 2 Threads/Core, 2 NUMA Nodes)"
    assert [device.type_ for device in summary.numa_topology["1"].devices] == ["GPU"]
    assert [device.name for device in summary.numa_topology["0"].devices] == ["eno1"]
    assert report.os_ip[0].ip_addresses == ["10.0.0.15"]
    assert report.bmc_ip is None


def test_sensitive_collection_is_opt_in(fake_runner) -> None:
    report = ReportGenerator(StubProvider(fake_runner())).generate_report(ReportConfig(include_sensitive=True))

    assert (report.bmc_ip, report.bmc_mac) == ("10.10.0.42", "d0:8e:79:01:02:03")


@pytest.mark.parametrize(("failing", "category"), [("gpu", "GPU"), ("cpu", "CPU"), ("hostname", "Hostname")])
def test_failing_category_aborts_generation(fake_runner, failing: str, category: str) -> None:
    runner = fake_runner()

    with pytest.raises(ReportGenerationError) as excinfo:
        ReportGenerator(StubProvider(runner, failing=failing)).generate_report()

    assert excinfo.value.category == category
    assert str(excinfo.value).startswith(f"{category} collection failed")
    assert isinstance(excinfo.value.domain, ParsingFailed)
    assert runner.cancelled


class EchoHostProvider(StubProvider):
    def get_hostname(self) -> str:
        return self._run("echo", "node01").strip()


def test_report_succeeds_after_a_failed_one() -> None:
    runner = CommandRunner(default_timeout=5, retry_count=0)
    provider = EchoHostProvider(runner, failing="cpu")
    generator = ReportGenerator(provider)

    with pytest.raises(ReportGenerationError):
        generator.generate_report()
    assert runner.cancelled

    provider.failing = ""
    report = generator.generate_report()

    assert report.hostname == "node01"
    assert not runner.cancelled


class SlowProvider(StubProvider):
    DELAY = 0.3

    def _slow(self, result):
        time.sleep(self.DELAY)
        return result

    def get_cpu_info(self) -> CpuInfo:
        return self._slow(super().get_cpu_info())

    def get_memory_info(self) -> MemoryInfo:
        return self._slow(super().get_memory_info())

    def get_storage_info(self) -> StorageInfo:
        return self._slow(super().get_storage_info())

    def get_gpu_info(self) -> GpuInfo:
        return self._slow(super().get_gpu_info())

    def get_network_info(self) -> NetworkInfo:
        return self._slow(super().get_network_info())

    def get_system_info(self) -> SystemInfo:
        return self._slow(super().get_system_info())

    def get_bios_info(self) -> BiosInfo:
        return self._slow(super().get_bios_info())

    def get_chassis_info(self) -> ChassisInfo:
        return self._slow(super().get_chassis_info())


def test_categories_within_a_phase_run_concurrently(fake_runner) -> None:
    started = time.monotonic()
    ReportGenerator(SlowProvider(fake_runner())).generate_report()
    elapsed = time.monotonic() - started

    # Eight slow categories over two phases take 2.4s when run one after another.
    assert elapsed < 1.5


def test_empty_hostname_fails_validation(fake_runner) -> None:
    provider = StubProvider(fake_runner())
    provider.get_hostname = lambda: "  "

    with pytest.raises(ReportValidationError):
        ReportGenerator(provider).generate_report()


def test_cpu_summary_pluralisation() -> None:
    single = build_cpu_topology(CpuInfo(model="Core i7", cores=1, threads=1, sockets=1), 1)
    many = build_cpu_topology(CpuInfo(model="EPYC", cores=64, threads=2, sockets=2), 4)

    assert format_cpu_summary(single) == "Core i7 (1 Socket, 1 Core/Socket, 1 Thread/Core, 1 NUMA Node)"
    assert format_cpu_summary(many) == "EPYC (2 Sockets, 64 Cores/Socket, 2 Threads/Core, 4 NUMA Nodes)"


def test_format_total_storage() -> None:
    assert format_total_storage([]) == "0 GB"
    assert format_total_storage([StorageDevice(name="sda", size_bytes=500 * 1024**3)]) == "500 GB"
    assert format_total_storage([StorageDevice(name="sda", size_bytes=3 * TIB)]) == "3.0 TB"

"""Concurrent report generation across all hardware categories."""
from __future__ import annotations

import logging
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, Optional

from .collectors.base import SystemInfoProvider
from .config import ReportConfig
from .errors import ReportGenerationError, ReportValidationError, to_domain_error
from .model import HardwareInfo, Report
from .summary import build_summary
from .util.subprocess import CommandRunner

LOGGER = logging.getLogger(__name__)

Task = Callable[[], Any]


class ReportGenerator:
    """Runs the provider's category operations in parallel phases and assembles a ``Report``.

    The first failing category aborts generation: pending categories are
    cancelled and the runner's in-flight processes are killed.
    """

    def __init__(self, provider: SystemInfoProvider, runner: Optional[CommandRunner] = None) -> None:
        self.provider = provider
        self.runner = runner if runner is not None else provider.runner

    def generate_report(self, config: Optional[ReportConfig] = None) -> Report:
        config = config or ReportConfig()
        provider = self.provider
        # A previous failed generation leaves the runner cancelled.
        self.runner.reset()

        hardware = self._join(
            {
                "CPU": provider.get_cpu_info,
                "Memory": provider.get_memory_info,
                "Storage": provider.get_storage_info,
                "GPU": provider.get_gpu_info,
                "Network": provider.get_network_info,
            }
        )
        identity = self._join(
            {
                "System info": provider.get_system_info,
                "BIOS": provider.get_bios_info,
                "Chassis": provider.get_chassis_info,
                "Motherboard": provider.get_motherboard_info,
                "NUMA": provider.get_numa_topology,
                "Filesystem": provider.get_filesystems,
            }
        )
        host_tasks: Dict[str, Task] = {
            "Hostname": provider.get_hostname,
            "FQDN": provider.get_fqdn,
            "Interface IP": provider.get_interface_ips,
        }
        if config.include_sensitive:
            host_tasks["BMC"] = provider.get_bmc_info
        host = self._join(host_tasks)
        bmc_ip, bmc_mac = host.get("BMC", (None, None))

        storage = hardware["Storage"]
        gpus = hardware["GPU"]
        network = hardware["Network"]
        summary = build_summary(
            cpu=hardware["CPU"],
            memory=hardware["Memory"],
            storage=storage.devices,
            gpus=gpus.devices,
            interfaces=network.interfaces,
            system_info=identity["System info"],
            bios=identity["BIOS"],
            chassis=identity["Chassis"],
            motherboard=identity["Motherboard"],
            numa=identity["NUMA"],
            filesystems=identity["Filesystem"],
        )
        report = Report(
            hostname=host["Hostname"],
            fqdn=host["FQDN"],
            summary=summary,
            hardware=HardwareInfo(cpu=hardware["CPU"], memory=hardware["Memory"], storage=storage, gpus=gpus),
            network=network,
            os_ip=host["Interface IP"],
            bmc_ip=bmc_ip,
            bmc_mac=bmc_mac,
        )
        validate_report(report)
        LOGGER.debug("Report generated for %s", report.hostname)
        return report

    def _join(self, tasks: Dict[str, Task]) -> Dict[str, Any]:
        pool = ThreadPoolExecutor(max_workers=len(tasks), thread_name_prefix="collect")
        futures: Dict[Future, str] = {pool.submit(task): name for name, task in tasks.items()}
        try:
            done, _ = wait(futures, return_when=FIRST_EXCEPTION)
        except BaseException:
            self._cancel(pool)
            raise
        for future in done:
            exc = future.exception()
            if exc is not None:
                category = futures[future]
                LOGGER.debug("%s collection failed: %s", category, exc)
                self._cancel(pool)
                error = ReportGenerationError(category, str(exc))
                error.domain = to_domain_error(exc)
                raise error from exc
        pool.shutdown(wait=True)
        return {name: future.result() for future, name in futures.items()}

    def _cancel(self, pool: ThreadPoolExecutor) -> None:
        self.runner.cancel()
        pool.shutdown(wait=True, cancel_futures=True)


def validate_report(report: Report) -> None:
    if not report.hostname.strip():
        raise ReportValidationError("Report has an empty hostname")
    if report.summary.total_nics != len(report.network.interfaces):
        raise ReportValidationError("Summary NIC count does not match the collected interfaces")
    if report.summary.total_gpus != len(report.hardware.gpus.devices):
        raise ReportValidationError("Summary GPU count does not match the collected GPUs")

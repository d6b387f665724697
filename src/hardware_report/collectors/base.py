"""Provider contract shared by the Linux and macOS collectors."""
from __future__ import annotations

import abc
import logging
from typing import Dict, List, Optional, Tuple

import netifaces

from ..errors import CommandExecutionError, CommandFailedError
from ..model import (
    BiosInfo,
    ChassisInfo,
    CpuInfo,
    GpuInfo,
    InterfaceIPs,
    MemoryInfo,
    MotherboardInfo,
    NetworkInfo,
    NumaNode,
    StorageInfo,
    SystemInfo,
)
from ..util.subprocess import CommandOutput, CommandRunner, SystemCommand

LOGGER = logging.getLogger(__name__)


class SystemInfoProvider(abc.ABC):
    """One collection operation per hardware category.

    Operations return placeholder records rather than raising whenever the
    underlying source is optional; an exception means a mandatory source ran
    but produced something unusable.
    """

    required_commands: Tuple[str, ...] = ()

    def __init__(self, runner: CommandRunner, *, skip_sudo: bool = False) -> None:
        self.runner = runner
        self.skip_sudo = skip_sudo

    @abc.abstractmethod
    def get_cpu_info(self) -> CpuInfo: ...

    @abc.abstractmethod
    def get_memory_info(self) -> MemoryInfo: ...

    @abc.abstractmethod
    def get_storage_info(self) -> StorageInfo: ...

    @abc.abstractmethod
    def get_gpu_info(self) -> GpuInfo: ...

    @abc.abstractmethod
    def get_network_info(self) -> NetworkInfo: ...

    @abc.abstractmethod
    def get_system_info(self) -> SystemInfo: ...

    @abc.abstractmethod
    def get_bios_info(self) -> BiosInfo: ...

    @abc.abstractmethod
    def get_chassis_info(self) -> ChassisInfo: ...

    @abc.abstractmethod
    def get_motherboard_info(self) -> MotherboardInfo: ...

    @abc.abstractmethod
    def get_numa_topology(self) -> Dict[str, NumaNode]: ...

    @abc.abstractmethod
    def get_filesystems(self) -> List[str]: ...

    @abc.abstractmethod
    def get_hostname(self) -> str: ...

    @abc.abstractmethod
    def get_fqdn(self) -> str: ...

    @abc.abstractmethod
    def has_required_privileges(self) -> bool: ...

    def get_bmc_info(self) -> Tuple[Optional[str], Optional[str]]:
        return None, None

    def get_missing_dependencies(self) -> List[str]:
        return [name for name in self.required_commands if not self.runner.is_command_available(name)]

    def get_interface_ips(self) -> List[InterfaceIPs]:
        """IPv4 addresses per interface, loopback excluded."""
        result: List[InterfaceIPs] = []
        for name in sorted(netifaces.interfaces()):
            if name.startswith("lo"):
                continue
            addresses = [
                entry["addr"]
                for entry in netifaces.ifaddresses(name).get(netifaces.AF_INET, [])
                if entry.get("addr")
            ]
            if addresses:
                result.append(InterfaceIPs(interface=name, ip_addresses=addresses))
        return result

    # Helpers for subclasses

    def _run(self, program: str, *args: str) -> str:
        """Run a mandatory command; a non-zero exit or spawn failure raises."""
        command = SystemCommand(program, list(args))
        return _checked(command, self.runner.execute(command))

    def _run_optional(self, program: str, *args: str, privileged: bool = False) -> Optional[str]:
        """Run a command whose absence or failure only means the fact is unknown."""
        command = SystemCommand(program, list(args))
        try:
            if privileged and not self.skip_sudo:
                output = self.runner.execute_with_privileges(command)
            else:
                output = self.runner.execute(command)
        except CommandExecutionError as exc:
            LOGGER.debug("%s unavailable: %s", program, exc)
            return None
        if not output.success:
            LOGGER.debug("%s exited with %s: %s", command, output.exit_code, output.stderr.strip())
            return None
        return output.stdout


def _checked(command: SystemCommand, output: CommandOutput) -> str:
    if not output.success:
        raise CommandFailedError(str(command), output.exit_code, output.stderr)
    return output.stdout

"""Command-line interface for hardware report collection."""
from __future__ import annotations

import argparse
import logging
import os
import platform
import re
import sys
from pathlib import Path
from typing import Optional

from .collectors.base import SystemInfoProvider
from .collectors.linux_hw import LinuxSystemInfoProvider
from .collectors.macos_hw import MacOSSystemInfoProvider
from .collectors.snapshot import save_report
from .config import CliConfigProvider, OutputFormat, ReportConfig
from .errors import HardwareReportError, InvalidConfiguration, PublishNetworkError
from .model import UNKNOWN, Report
from .publisher import HttpPublisher
from .report import ReportGenerator
from .util.logging import setup_logging
from .util.subprocess import CommandRunner

LOGGER = logging.getLogger(__name__)

LINUX_PACKAGES = {
    "lscpu": "util-linux",
    "dmidecode": "dmidecode",
    "free": "procps",
    "lsblk": "util-linux",
    "ip": "iproute2",
    "hostname": "hostname",
    "df": "coreutils",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hardware-report",
        description="Collect a hardware inventory report and write it to disk or post it to a collector",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path.cwd(),
        help="Directory to place report files (default: current working directory)",
    )
    parser.add_argument(
        "--file-format",
        choices=[fmt.value for fmt in OutputFormat],
        default=OutputFormat.TOML.value,
        help="Report file format (default: toml)",
    )
    parser.add_argument("--post", action="store_true", help="POST the report to --endpoint")
    parser.add_argument("--endpoint", help="Collector URL used with --post")
    parser.add_argument("--auth-token", help="Bearer token for the collector (default: $HARDWARE_REPORT_TOKEN)")
    parser.add_argument(
        "--label",
        action="append",
        metavar="KEY=VALUE",
        help="Label attached to the posted report; may be repeated",
    )
    parser.add_argument("--skip-tls-verify", action="store_true", help="Do not verify the collector's TLS certificate")
    parser.add_argument(
        "--test-connectivity",
        action="store_true",
        help="Probe the collector with HEAD before posting",
    )
    parser.add_argument("--skip-sudo", action="store_true", help="Never escalate with sudo")
    parser.add_argument(
        "--include-sensitive",
        action="store_true",
        help="Also collect BMC addressing through ipmitool",
    )
    parser.add_argument("--timeout", type=int, default=30, help="Per-command timeout in seconds (default: 30)")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def build_provider(runner: CommandRunner, config: ReportConfig, system: Optional[str] = None) -> SystemInfoProvider:
    system = (system or platform.system()).lower()
    if system == "linux":
        return LinuxSystemInfoProvider(runner, skip_sudo=config.skip_sudo)
    if system == "darwin":
        return MacOSSystemInfoProvider(runner, skip_sudo=config.skip_sudo)
    raise InvalidConfiguration(f"Unsupported platform for hardware collection: {system}")


def install_hint(command: str, system: str) -> str:
    if system == "darwin":
        return f"{command} ships with macOS; reinstall the command line tools with 'xcode-select --install'"
    package = LINUX_PACKAGES.get(command, command)
    return f"install it with 'sudo apt-get install {package}' or 'sudo dnf install {package}'"


def sanitize_filename(value: str) -> str:
    return re.sub(r"[^A-Za-z0-9-]", "_", value)


def report_filename(report: Report, extension: str) -> str:
    serial = report.summary.chassis.serial or UNKNOWN
    return f"{sanitize_filename(serial)}_hardware_report.{extension}"


def _warn_missing_dependencies(provider: SystemInfoProvider, system: str) -> None:
    for command in provider.get_missing_dependencies():
        LOGGER.warning("Required command '%s' not found; %s", command, install_hint(command, system))


def _log_summary(report: Report) -> None:
    summary = report.summary
    LOGGER.info("Host: %s (%s)", report.hostname, report.fqdn)
    LOGGER.info("System: %s %s", summary.system_info.product_manufacturer or UNKNOWN, summary.system_info.product_name or UNKNOWN)
    LOGGER.info("CPU: %s", summary.cpu_summary)
    LOGGER.info("Memory: %s (%s)", summary.total_memory, summary.memory_config)
    LOGGER.info("Storage: %s across %d device(s)", summary.total_storage, len(report.hardware.storage.devices))
    LOGGER.info("GPUs: %d, NICs: %d", summary.total_gpus, summary.total_nics)


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(verbose=args.verbose)

    LOGGER.debug("Parsed arguments: %s", args)

    try:
        settings = CliConfigProvider(args, dict(os.environ))
        config = settings.report_config()
        publish_config = settings.publish_config()

        system = platform.system().lower()
        runner = CommandRunner(default_timeout=config.command_timeout_seconds, verbose=config.verbose)
        provider = build_provider(runner, config, system)
        _warn_missing_dependencies(provider, system)
        if not provider.has_required_privileges():
            LOGGER.warning("Not running as root; DMI, memory module and BMC details may be incomplete")

        report = ReportGenerator(provider, runner).generate_report(config)
        _log_summary(report)

        for extension in settings.output_format().extensions:
            path = save_report(report, settings.output_dir() / report_filename(report, extension))
            LOGGER.info("Report saved to %s", path)

        if publish_config is not None:
            publisher = HttpPublisher.from_config(publish_config)
            if args.test_connectivity and not publisher.test_connectivity(publish_config):
                raise PublishNetworkError(f"Collector {publish_config.endpoint} is not reachable")
            publisher.publish(report, publish_config)
        return 0
    except HardwareReportError as exc:
        LOGGER.error("%s", exc)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())

"""Run configuration for report generation and publishing."""
from __future__ import annotations

import argparse
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from .errors import InvalidConfiguration

TOKEN_ENV_VAR = "HARDWARE_REPORT_TOKEN"


class OutputFormat(str, Enum):
    JSON = "json"
    TOML = "toml"
    BOTH = "both"

    @property
    def extensions(self) -> List[str]:
        if self is OutputFormat.BOTH:
            return ["json", "toml"]
        return [self.value]


@dataclass
class ReportConfig:
    include_sensitive: bool = False
    skip_sudo: bool = False
    command_timeout_seconds: int = 30
    verbose: bool = False


@dataclass
class PublishConfig:
    endpoint: str
    auth_token: Optional[str] = None
    skip_tls_verify: bool = False
    labels: Dict[str, str] = field(default_factory=dict)
    timeout_seconds: int = 30


def parse_labels(values: Optional[List[str]]) -> Dict[str, str]:
    labels: Dict[str, str] = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise InvalidConfiguration(f"Label must look like key=value, got {item!r}")
        labels[key.strip()] = value.strip()
    return labels


class CliConfigProvider:
    """Builds configuration objects from parsed command-line arguments."""

    def __init__(self, args: argparse.Namespace, environ: Optional[Dict[str, str]] = None) -> None:
        self.args = args
        self.environ = environ or {}

    def report_config(self) -> ReportConfig:
        if self.args.timeout <= 0:
            raise InvalidConfiguration(f"Timeout must be positive, got {self.args.timeout}")
        return ReportConfig(
            include_sensitive=self.args.include_sensitive,
            skip_sudo=self.args.skip_sudo,
            command_timeout_seconds=self.args.timeout,
            verbose=self.args.verbose,
        )

    def publish_config(self) -> Optional[PublishConfig]:
        if not self.args.post:
            return None
        if not self.args.endpoint:
            raise InvalidConfiguration("--post requires --endpoint")
        return PublishConfig(
            endpoint=self.args.endpoint,
            auth_token=self.args.auth_token or self.environ.get(TOKEN_ENV_VAR),
            skip_tls_verify=self.args.skip_tls_verify,
            labels=self.labels(),
            timeout_seconds=self.args.timeout,
        )

    def output_format(self) -> OutputFormat:
        return OutputFormat(self.args.file_format)

    def output_dir(self) -> Path:
        return self.args.output_dir

    def labels(self) -> Dict[str, str]:
        return parse_labels(self.args.label)

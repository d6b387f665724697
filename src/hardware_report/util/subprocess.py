"""Subprocess execution with timeouts, retries and cancellation."""
from __future__ import annotations

import logging
import os
import subprocess
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set

from ..errors import CommandExecutionError, InvalidArgumentsError

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_RETRY_COUNT = 2
RETRY_BACKOFF = 0.1


@dataclass
class SystemCommand:
    program: str
    args: List[str] = field(default_factory=list)
    working_dir: Optional[Path] = None
    env: Optional[Dict[str, str]] = None
    timeout: Optional[float] = None
    use_sudo: bool = False

    def argv(self, *, sudo: bool = False) -> List[str]:
        base = [self.program, *self.args]
        if sudo or self.use_sudo:
            return ["sudo", *base]
        return base

    def __str__(self) -> str:
        return " ".join([self.program, *self.args])


@dataclass
class CommandOutput:
    stdout: str
    stderr: str
    exit_code: Optional[int]

    @property
    def success(self) -> bool:
        return self.exit_code == 0


class CommandRunner:
    """Runs external programs on behalf of the providers.

    A non-zero exit status is reported through ``CommandOutput`` and is not an
    error; spawn failures, timeouts and cancellation raise
    ``CommandExecutionError``. Failed attempts are retried ``retry_count``
    times with a linear backoff.
    """

    def __init__(
        self,
        default_timeout: float = DEFAULT_TIMEOUT,
        retry_count: int = DEFAULT_RETRY_COUNT,
        verbose: bool = False,
    ) -> None:
        if default_timeout <= 0:
            raise InvalidArgumentsError(f"Timeout must be positive, got {default_timeout}")
        if retry_count < 0:
            raise InvalidArgumentsError(f"Retry count must not be negative, got {retry_count}")
        self.default_timeout = default_timeout
        self.retry_count = retry_count
        self.verbose = verbose
        self._live: Set[subprocess.Popen] = set()
        self._lock = threading.Lock()
        self._cancelled = threading.Event()

    def execute(self, command: SystemCommand) -> CommandOutput:
        return self._execute_with_retry(command, sudo=False)

    def execute_with_privileges(self, command: SystemCommand) -> CommandOutput:
        return self._execute_with_retry(command, sudo=True)

    def is_command_available(self, name: str) -> bool:
        return self.get_command_path(name) is not None

    def get_command_path(self, name: str) -> Optional[str]:
        try:
            output = self.execute(SystemCommand("which", [name]))
        except CommandExecutionError as exc:
            LOGGER.debug("Unable to probe for %s: %s", name, exc)
            return None
        path = output.stdout.strip()
        if output.success and path:
            return path
        return None

    def has_elevated_privileges(self) -> bool:
        try:
            output = self.execute(SystemCommand("id", ["-u"]))
        except CommandExecutionError as exc:
            LOGGER.debug("Unable to determine effective user: %s", exc)
            return False
        return output.success and output.stdout.strip() == "0"

    def cancel(self) -> None:
        """Kill every running child and fail further executions until ``reset``."""
        self._cancelled.set()
        with self._lock:
            processes = list(self._live)
        for process in processes:
            try:
                process.kill()
            except OSError as exc:
                LOGGER.debug("Unable to kill pid %s: %s", process.pid, exc)

    def reset(self) -> None:
        """Accept executions again after a ``cancel``."""
        self._cancelled.clear()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def _execute_with_retry(self, command: SystemCommand, *, sudo: bool) -> CommandOutput:
        attempt = 0
        while True:
            try:
                return self._execute_once(command, sudo=sudo)
            except CommandExecutionError as exc:
                if self.cancelled or attempt >= self.retry_count:
                    raise
                attempt += 1
                LOGGER.debug("Attempt %d of '%s' failed: %s", attempt, command, exc)
                time.sleep(RETRY_BACKOFF * attempt)

    def _execute_once(self, command: SystemCommand, *, sudo: bool) -> CommandOutput:
        if self.cancelled:
            raise CommandExecutionError(f"Command '{command}' cancelled")

        argv = command.argv(sudo=sudo)
        timeout = command.timeout if command.timeout is not None else self.default_timeout
        env = None
        if command.env:
            env = {**os.environ, **command.env}
        if self.verbose:
            LOGGER.debug("Running %s", " ".join(argv))

        try:
            process = subprocess.Popen(
                argv,
                cwd=command.working_dir,
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as exc:
            raise CommandExecutionError(f"Failed to execute '{command.program}': {exc}") from exc

        with self._lock:
            self._live.add(process)
        try:
            stdout, stderr = process.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            process.kill()
            process.communicate()
            raise CommandExecutionError(f"Command '{command}' timed out after {timeout:g}s")
        finally:
            with self._lock:
                self._live.discard(process)

        if self.cancelled:
            raise CommandExecutionError(f"Command '{command}' cancelled")

        exit_code: Optional[int] = process.returncode
        if exit_code is not None and exit_code < 0:
            exit_code = None
        return CommandOutput(
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            exit_code=exit_code,
        )

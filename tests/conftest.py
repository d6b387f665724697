from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

import pytest

from hardware_report.errors import CommandExecutionError
from hardware_report.util.subprocess import CommandOutput, SystemCommand

FIXTURES = Path(__file__).parent / "fixtures"

Response = Union[str, CommandOutput, Exception]


class FakeRunner:
    """Answers commands from a table keyed by ``(program, *args)``.

    Unlisted commands fail the way a missing binary does.
    """

    def __init__(
        self,
        responses: Optional[Dict[Tuple[str, ...], Response]] = None,
        available: Iterable[str] = (),
        root: bool = False,
    ) -> None:
        self.responses = dict(responses or {})
        self.available = set(available)
        self.root = root
        self.calls: List[Tuple[str, ...]] = []
        self.privileged_calls: List[Tuple[str, ...]] = []
        self.cancelled = False

    def execute(self, command: SystemCommand) -> CommandOutput:
        key = (command.program, *command.args)
        self.calls.append(key)
        return self._respond(key)

    def execute_with_privileges(self, command: SystemCommand) -> CommandOutput:
        key = (command.program, *command.args)
        self.privileged_calls.append(key)
        return self._respond(key)

    def is_command_available(self, name: str) -> bool:
        return name in self.available

    def has_elevated_privileges(self) -> bool:
        return self.root

    def cancel(self) -> None:
        self.cancelled = True

    def reset(self) -> None:
        self.cancelled = False

    def _respond(self, key: Tuple[str, ...]) -> CommandOutput:
        response = self.responses.get(key)
        if response is None:
            raise CommandExecutionError(f"Failed to execute '{key[0]}': No such file or directory")
        if isinstance(response, Exception):
            raise response
        if isinstance(response, CommandOutput):
            return response
        return CommandOutput(stdout=response, stderr="", exit_code=0)


@pytest.fixture
def read_fixture() -> Callable[[str], str]:
    def _read(name: str) -> str:
        return (FIXTURES / name).read_text(encoding="utf-8")

    return _read


@pytest.fixture
def fake_runner() -> Callable[..., FakeRunner]:
    return FakeRunner

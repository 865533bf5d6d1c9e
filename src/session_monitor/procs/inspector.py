"""Async process inspection backed by ps, lsof and pkill."""

from __future__ import annotations

import asyncio
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping, Protocol

from .utils import parse_tty, sanitize_environment


class ProcessInspectionError(RuntimeError):
    """Base class for process inspection errors."""


class LivenessQueryError(ProcessInspectionError):
    """Raised when the batched terminal or process enumeration fails."""


class DiscoveryProcessError(ProcessInspectionError):
    """Raised when a single process cannot be inspected."""


@dataclass(slots=True)
class CommandResult:
    """Holds the outcome of an inspection command."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@dataclass(slots=True, frozen=True)
class ProcessInfo:
    pid: int
    tty: str | None
    command: str


class ProcessInspector(Protocol):
    """Capability used by liveness probing, discovery and the kill action."""

    async def dead_terminals(self, ttys: set[str]) -> set[str]:
        ...

    async def list_processes(self) -> list[ProcessInfo]:
        ...

    async def resolve_cwd(self, pid: int) -> str:
        ...

    async def signal_terminal(self, tty: str, program: str) -> bool:
        ...


class PsProcessInspector:
    """Inspect processes through the platform's ps, lsof and pkill tools."""

    def __init__(self, *, proc_root: Path = Path("/proc")) -> None:
        self._proc_root = proc_root

    @staticmethod
    def _resolve_executable(name: str) -> str:
        binary = shutil.which(name)
        if binary is None:
            raise ProcessInspectionError(f"{name} executable not found on PATH")
        return binary

    async def dead_terminals(self, ttys: set[str]) -> set[str]:
        """Return the subset of ``ttys`` with no attached process.

        Issues one ``ps`` invocation for the whole batch.
        """

        if not ttys:
            return set()
        try:
            result = await self._invoke("ps", "-A", "-o", "tty=")
        except ProcessInspectionError as exc:
            raise LivenessQueryError(str(exc)) from exc
        if not result.ok:
            raise LivenessQueryError(
                result.stderr.strip() or f"ps exited with code {result.returncode}"
            )

        lines = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        # ps always lists at least itself; empty output means the query did not run.
        if not lines:
            raise LivenessQueryError("ps returned no processes")
        active = {tty for tty in (parse_tty(line) for line in lines) if tty}
        return {tty for tty in ttys if tty not in active}

    async def list_processes(self) -> list[ProcessInfo]:
        try:
            result = await self._invoke("ps", "-A", "-o", "pid=,tty=,comm=")
        except ProcessInspectionError as exc:
            raise LivenessQueryError(str(exc)) from exc
        if not result.ok:
            raise LivenessQueryError(
                result.stderr.strip() or f"ps exited with code {result.returncode}"
            )
        return parse_process_table(result.stdout)

    async def resolve_cwd(self, pid: int) -> str:
        proc_dir = self._proc_root / str(pid)
        if self._proc_root.is_dir():
            try:
                return os.readlink(proc_dir / "cwd")
            except OSError as exc:
                raise DiscoveryProcessError(f"Cannot read cwd of pid {pid}: {exc}") from exc

        try:
            result = await self._invoke("lsof", "-a", "-p", str(pid), "-d", "cwd", "-Fn")
        except ProcessInspectionError as exc:
            raise DiscoveryProcessError(str(exc)) from exc
        names = [line[1:] for line in result.stdout.splitlines() if line.startswith("n")]
        if not result.ok or not names:
            raise DiscoveryProcessError(f"lsof could not resolve cwd of pid {pid}")
        return names[-1]

    async def signal_terminal(self, tty: str, program: str) -> bool:
        """Send SIGTERM to ``program`` processes attached to ``tty``.

        Returns False when nothing matched.
        """

        result = await self._invoke("pkill", "-TERM", "-t", tty, "-f", program)
        if result.returncode not in (0, 1):
            raise ProcessInspectionError(
                result.stderr.strip() or f"pkill exited with code {result.returncode}"
            )
        return result.ok

    async def _invoke(self, name: str, *args: str) -> CommandResult:
        cmd = [self._resolve_executable(name), *args]
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=sanitize_environment(),
            )
        except OSError as exc:
            raise ProcessInspectionError(f"Failed to launch {name}: {exc}") from exc
        stdout_bytes, stderr_bytes = await process.communicate()
        stdout = stdout_bytes.decode("utf-8", errors="replace")
        stderr = stderr_bytes.decode("utf-8", errors="replace")
        return CommandResult(args=tuple(cmd), returncode=process.returncode, stdout=stdout, stderr=stderr)


def parse_process_table(output: str) -> list[ProcessInfo]:
    """Parse ``ps -o pid=,tty=,comm=`` output."""

    processes: list[ProcessInfo] = []
    for line in output.splitlines():
        parts = line.split(None, 2)
        if len(parts) < 3:
            continue
        pid_raw, tty_raw, command = parts
        try:
            pid = int(pid_raw)
        except ValueError:
            continue
        processes.append(ProcessInfo(pid=pid, tty=parse_tty(tty_raw), command=command.strip()))
    return processes


class FakeProcessInspector:
    """Test double that answers inspection calls from canned data."""

    def __init__(
        self,
        *,
        dead: Iterable[str] | None = None,
        processes: Iterable[ProcessInfo] | None = None,
        cwds: Mapping[int, str] | None = None,
        fail_liveness: bool = False,
    ) -> None:
        self.dead = set(dead or [])
        self.processes = list(processes or [])
        self.cwds = dict(cwds or {})
        self.fail_liveness = fail_liveness
        self._invocations: list[tuple[str, ...]] = []

    async def dead_terminals(self, ttys: set[str]) -> set[str]:
        self._invocations.append(("dead_terminals", *sorted(ttys)))
        if self.fail_liveness:
            raise LivenessQueryError("simulated ps failure")
        return {tty for tty in ttys if tty in self.dead}

    async def list_processes(self) -> list[ProcessInfo]:
        self._invocations.append(("list_processes",))
        return list(self.processes)

    async def resolve_cwd(self, pid: int) -> str:
        self._invocations.append(("resolve_cwd", str(pid)))
        try:
            return self.cwds[pid]
        except KeyError as exc:
            raise DiscoveryProcessError(f"pid {pid} has exited") from exc

    async def signal_terminal(self, tty: str, program: str) -> bool:
        self._invocations.append(("signal_terminal", tty, program))
        return any(proc.tty == tty for proc in self.processes)

    @property
    def invocations(self) -> list[tuple[str, ...]]:
        return self._invocations

    def calls(self, name: str) -> list[tuple[str, ...]]:
        return [call for call in self._invocations if call[0] == name]


__all__ = [
    "CommandResult",
    "DiscoveryProcessError",
    "FakeProcessInspector",
    "LivenessQueryError",
    "ProcessInfo",
    "ProcessInspectionError",
    "ProcessInspector",
    "PsProcessInspector",
    "parse_process_table",
]

"""Shell hooks run around task switches (``on_leave`` / ``on_enter``)."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass

from loguru import logger

from grill.config.schema import GrillConfig, TaskConfig
from grill.session.task_manager import LaunchSpec

HOOK_TIMEOUT_S = 30.0


@dataclass(frozen=True)
class HookResult:
    event: str
    command: str
    returncode: int | None
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def collect_hooks(event: str, config: GrillConfig, task_config: TaskConfig) -> list[str]:
    """Global hook first, then the task's own hook for ``event``."""
    commands: list[str] = []
    for source in (config.hooks, task_config.hooks):
        command = (source.get(event) or "").strip()
        if command:
            commands.append(command)
    return commands


def run_hooks(event: str, commands: list[str], spec: LaunchSpec) -> list[HookResult]:
    """Run each hook through the shell with the task's environment.

    Hooks never raise: failures come back as results with a non-zero (or
    None, on timeout) return code.
    """
    results: list[HookResult] = []
    for command in commands:
        logger.info(f"[hooks] {event} for '{spec.task}': {command[:60]}")
        try:
            proc = subprocess.run(
                command,
                shell=True,
                cwd=spec.cwd or None,
                env=spec.env,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="ignore",
                timeout=HOOK_TIMEOUT_S,
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"[hooks] {event} timed out after {HOOK_TIMEOUT_S:.0f}s: {command[:60]}")
            results.append(HookResult(event=event, command=command, returncode=None))
            continue
        except OSError as exc:
            logger.warning(f"[hooks] {event} failed to start: {exc}")
            results.append(HookResult(event=event, command=command, returncode=None, output=str(exc)))
            continue
        output = (proc.stdout or "") + (proc.stderr or "")
        if proc.returncode != 0:
            logger.warning(f"[hooks] {event} exited {proc.returncode}: {output.strip()[:200]}")
        results.append(HookResult(event=event, command=command, returncode=proc.returncode, output=output))
    return results

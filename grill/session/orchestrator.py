"""Top-level control loop tying terminal, classifier, router and child together."""

from __future__ import annotations

import select
import signal
from typing import Callable

from loguru import logger

from grill.config.schema import GrillConfig
from grill.errors import TaskError
from grill.runtime.pty_session import ExitStatus, PtySession, spawn
from grill.session.classifier import ERASE_ECHO, Cancel, Echo, Forward, InputClassifier, Submit
from grill.session.commands import CommandRouter, Outcome, format_message
from grill.session.hooks import collect_hooks, run_hooks
from grill.session.task_manager import LaunchSpec, TaskManager
from grill.terminal.driver import ESCAPE_TIMEOUT_S, KeyEvent, TerminalDriver
from grill.terminal.signals import SignalWatcher

# Sent to the child when a non-interactive stdin reaches EOF.
EOF_KEY = b"\x04"

SpawnFn = Callable[..., PtySession]


class Session:
    """One terminal, one inner CLI child and one active task.

    Everything runs on the calling thread: a single ``select`` waits on the
    real terminal, the PTY master and the signal wakeup pipe, so neither
    direction can starve the other and local messages are written whole,
    between child output chunks.

    Switching tasks restarts the child: the new process gets the new task's
    environment and working directory. The old process and whatever state it
    held in memory are gone; this is a visible discontinuity for the user.
    """

    def __init__(
        self,
        tasks: TaskManager,
        terminal: TerminalDriver,
        *,
        config: GrillConfig | None = None,
        cli_override: list[str] | None = None,
        spawn_fn: SpawnFn = spawn,
        signal_watcher: Callable[[], SignalWatcher] = SignalWatcher,
    ) -> None:
        self.tasks = tasks
        self.terminal = terminal
        self.config = config or tasks.config
        self.cli_override = list(cli_override or [])
        self.router = CommandRouter(tasks)
        self.classifier = InputClassifier()
        self._spawn = spawn_fn
        self._signal_watcher = signal_watcher

        self._child: PtySession | None = None
        self._spec: LaunchSpec | None = None
        self._done = False
        self._quit_requested = False
        self._stdin_closed = False
        self.exit_code = 0

    @property
    def child(self) -> PtySession | None:
        return self._child

    @property
    def spec(self) -> LaunchSpec | None:
        return self._spec

    @property
    def done(self) -> bool:
        return self._done

    @property
    def quit_requested(self) -> bool:
        return self._quit_requested

    # ------------------------------------------------------------------ #
    # Lifecycle                                                            #
    # ------------------------------------------------------------------ #

    def run(self) -> int:
        """Run until /quit, terminal close or child exit; return the exit code.

        Raises SpawnError (before or during the session) and
        TerminalModeError; in both cases the terminal is left restored.
        """
        self.start_child()
        try:
            with self.terminal.enter_raw_mode(), self._signal_watcher() as signals:
                try:
                    self.notify(f"task {self._spec.task} - {self._spec.display} (type /help for commands)")
                    while not self._done:
                        self._poll(signals)
                except KeyboardInterrupt:
                    logger.info("[session] Interrupted")
                    self._finish(130)
                finally:
                    self.stop_child()
        finally:
            self.stop_child()
            self.tasks.persist()
        logger.info(f"[session] Ended with exit code {self.exit_code}")
        return self.exit_code

    def start_child(self, spec: LaunchSpec | None = None) -> PtySession:
        spec = spec or self.tasks.launch_spec(override=self.cli_override)
        rows, cols = self.terminal.get_size()
        self._child = self._spawn(
            spec.command,
            spec.args,
            env=spec.env,
            cwd=spec.cwd,
            rows=rows,
            cols=cols,
        )
        self._spec = spec
        logger.info(f"[session] Task '{spec.task}' running {spec.display[:60]} in {spec.cwd}")
        return self._child

    def stop_child(self) -> ExitStatus | None:
        child = self._child
        if child is None:
            return None
        self._child = None
        try:
            return child.terminate(self.config.grace_period_s)
        finally:
            child.close()

    def restart_child(self) -> None:
        """Apply the active task: stop the current child, spawn a fresh one."""
        old_spec = self._spec
        new_spec = self.tasks.launch_spec(override=self.cli_override)
        if old_spec is not None:
            self._run_hooks("on_leave", old_spec)
        self.stop_child()
        self.classifier.reset()
        self._run_hooks("on_enter", new_spec)
        self.start_child(new_spec)
        self.notify(f"task {new_spec.task} - restarted {new_spec.display}")

    def request_quit(self, reason: str = "quit") -> None:
        logger.info(f"[session] Quit requested ({reason})")
        self._quit_requested = True
        self._finish(0)

    def _finish(self, code: int) -> None:
        self.exit_code = code
        self._done = True

    # ------------------------------------------------------------------ #
    # Event loop                                                           #
    # ------------------------------------------------------------------ #

    def _poll(self, signals: SignalWatcher) -> None:
        stdin_fd = self.terminal.fileno()
        fds = [signals.fileno()]
        if not self._stdin_closed:
            fds.append(stdin_fd)
        child = self._child
        if child is not None:
            fds.append(child.fileno())

        timeout = ESCAPE_TIMEOUT_S if self.terminal.has_pending_escape else None
        readable, _, _ = select.select(fds, [], [], timeout)
        if not readable:
            self.handle_keys(self.terminal.flush_pending())
            return

        if signals.fileno() in readable:
            self.handle_signals(signals.drain())
        if child is not None and child is self._child and child.fileno() in readable:
            self.pump_child_output()
        if not self._done and stdin_fd in readable:
            self.handle_keys(self.terminal.read_available())
            if self.terminal.eof:
                self.handle_stdin_eof()

    def handle_signals(self, signums: list[int]) -> None:
        for signum in signums:
            if signum == signal.SIGWINCH:
                self.sync_size()
            elif signum in (signal.SIGHUP, signal.SIGTERM):
                self.request_quit(f"signal {signum}")

    def handle_stdin_eof(self) -> None:
        self._stdin_closed = True
        if self.terminal.is_interactive:
            self.request_quit("terminal closed")
            return
        # Piped input: pass the end of input on and let the child finish.
        logger.info("[session] stdin reached EOF, sending EOF to child")
        self.write_child(EOF_KEY)

    def sync_size(self) -> None:
        if self._child is not None:
            rows, cols = self.terminal.get_size()
            self._child.resize(rows, cols)

    def pump_child_output(self) -> None:
        child = self._child
        if child is None:
            return
        data = child.read()
        if data is None:
            return
        if data:
            self.terminal.write_raw(data)
            return
        self.on_child_exit()

    def on_child_exit(self) -> None:
        """The link to the child is gone: report its status and end the session."""
        child = self._child
        if child is None:
            return
        self._child = None
        try:
            status = child.terminate(self.config.grace_period_s)
        finally:
            child.close()
        display = self._spec.display if self._spec else "inner CLI"
        if self._quit_requested:
            return
        self.notify(f"{display} exited ({status.describe()})")
        self._finish(status.exit_code)

    # ------------------------------------------------------------------ #
    # Input path                                                           #
    # ------------------------------------------------------------------ #

    def handle_keys(self, events: list[KeyEvent]) -> None:
        for event in events:
            if self._done:
                return
            for action in self.classifier.feed(event):
                if isinstance(action, Forward):
                    self.write_child(action.data)
                elif isinstance(action, Echo):
                    self.terminal.write_raw(action.data)
                elif isinstance(action, Submit):
                    self.handle_submit(action)
                elif isinstance(action, Cancel):
                    logger.debug(f"[session] Discarded command buffer {action.discarded!r}")

    def handle_submit(self, submit: Submit) -> Outcome:
        outcome = self.router.route(submit.line, submit.terminator)
        if outcome.passthrough is not None:
            self._erase_echo(submit.line)
            self.write_child(outcome.passthrough)
            return outcome

        self.notify(outcome.message)
        if outcome.quit:
            self.request_quit()
        elif outcome.restart:
            self.restart_child()
        elif self.config.prompt_refresh:
            self.write_child(self.config.prompt_refresh.encode("utf-8"))
        return outcome

    def write_child(self, data: bytes) -> None:
        child = self._child
        if child is None or child.closed:
            logger.debug(f"[session] Child gone, dropped {len(data)} input byte(s)")
            return
        try:
            child.write(data)
        except OSError as exc:
            logger.warning(f"[session] Write to child failed: {exc}")
            self.on_child_exit()

    def notify(self, text: str) -> None:
        """Write one local message to the real terminal in a single write."""
        self.terminal.write_raw(format_message(text))

    def _erase_echo(self, line: str) -> None:
        if line:
            self.terminal.write_raw(ERASE_ECHO)

    def _run_hooks(self, event: str, spec: LaunchSpec) -> None:
        try:
            task = self.tasks.get(spec.task)
        except TaskError as exc:
            logger.warning(f"[hooks] Skipping {event}: {exc}")
            return
        commands = collect_hooks(event, self.config, task.config)
        for result in run_hooks(event, commands, spec):
            if not result.ok:
                code = "timeout" if result.returncode is None else f"exit {result.returncode}"
                self.notify(f"warning: {event} hook failed ({code}): {result.command}")

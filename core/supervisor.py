"""Single-flight process supervisor: spawn, stream, and kill external tools."""

from __future__ import annotations

import codecs
import logging
import os
import signal
import subprocess
import threading
from dataclasses import dataclass
from functools import partial

from config.defaults import DEFAULTS
from core.events import OUTPUT, ERROR, SUCCESS

logger = logging.getLogger(__name__)

_READ_SIZE = 4096


@dataclass
class ProcessResult:
    ok: bool
    returncode: int | None
    stdout: str = ""
    stderr: str = ""
    error: str = ""     # spawn-level failure, e.g. binary not found

    @property
    def output(self) -> str:
        return f"{self.stdout}\n{self.stderr}"


class ManagedProcess:
    """One spawned external process and its captured output."""

    def __init__(self, popen, label):
        self.popen = popen
        self.label = label
        self.pid = popen.pid
        try:
            self.pgid = os.getpgid(popen.pid)
        except (ProcessLookupError, PermissionError):
            self.pgid = popen.pid
        self.stdout_chunks = []
        self.stderr_chunks = []
        self.terminating = False

    @property
    def stdout(self) -> str:
        return "".join(self.stdout_chunks)

    @property
    def stderr(self) -> str:
        return "".join(self.stderr_chunks)

    def is_alive(self) -> bool:
        return self.popen.poll() is None

    def _signal_group(self, sig):
        try:
            os.killpg(self.pgid, sig)
        except (ProcessLookupError, PermissionError):
            # Group already gone; fall back to the leader itself.
            try:
                self.popen.send_signal(sig)
            except (ProcessLookupError, OSError):
                pass

    def terminate(self):
        self.terminating = True
        self._signal_group(signal.SIGTERM)

    def kill(self):
        self._signal_group(signal.SIGKILL)


class ProcessSupervisor:
    """Runs one external process at a time on behalf of a session.

    The caller (the orchestrator) guarantees that no other process is current
    when spawn() is called. Output chunks are forwarded to the channel as they
    arrive; spawn() blocks until the process exits.
    """

    def __init__(self, session, channel, grace_period=None):
        self.session = session
        self.channel = channel
        self.grace_period = DEFAULTS["kill_grace_seconds"] if grace_period is None else grace_period

    def spawn(self, command, cwd=None, label=None, stderr_type=ERROR) -> ProcessResult:
        label = label or os.path.basename(command[0])
        try:
            popen = subprocess.Popen(
                command,
                cwd=cwd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=os.environ.copy(),
                bufsize=0,
                start_new_session=True,
            )
        except FileNotFoundError as e:
            if cwd and e.filename == cwd:
                message = f"Working directory does not exist: {cwd}"
            else:
                message = f"Command not found: {command[0]}"
            logger.error(message)
            self.channel.send(message, ERROR)
            return ProcessResult(ok=False, returncode=None, error=message)
        except OSError as e:
            message = f"Process error: {e}"
            logger.error("Failed to start %s: %s", command[0], e)
            self.channel.send(message, ERROR)
            return ProcessResult(ok=False, returncode=None, error=message)

        managed = ManagedProcess(popen, label)
        self.session.attach(managed)
        logger.info("Started %s (pid %s)", label, managed.pid)
        if self.session.abort_requested:
            # An abort that arrived before attach() found no process to kill.
            logger.info("Abort already requested, stopping %s", label)
            self.kill_current()

        stderr_reader = threading.Thread(
            target=self._pump,
            args=(popen.stderr, managed.stderr_chunks, stderr_type),
            name=f"{label}-stderr",
            daemon=True,
        )
        stderr_reader.start()
        try:
            self._pump(popen.stdout, managed.stdout_chunks, OUTPUT)
            returncode = popen.wait()
            stderr_reader.join()
        finally:
            self.session.release(managed)

        logger.info("%s exited with code %s", label, returncode)
        self.channel.send(f"{label} exited: {returncode}", SUCCESS if returncode == 0 else ERROR)
        return ProcessResult(
            ok=returncode == 0,
            returncode=returncode,
            stdout=managed.stdout,
            stderr=managed.stderr,
        )

    def _pump(self, stream, chunks, event_type):
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            for raw in iter(partial(stream.read, _READ_SIZE), b""):
                text = decoder.decode(raw)
                if text:
                    chunks.append(text)
                    self.channel.send(text, event_type)
            text = decoder.decode(b"", final=True)
            if text:
                chunks.append(text)
                self.channel.send(text, event_type)
        finally:
            stream.close()

    def kill_current(self) -> bool:
        """Terminate the current process group, escalating after the grace period.

        Returns True if a process was signalled. Calling it again while the
        same process is already terminating, or with nothing current, is a
        no-op.
        """
        managed = self.session.current_process
        if managed is None or managed.terminating:
            return False
        logger.info("Sending SIGTERM to process group %s (%s)", managed.pgid, managed.label)
        managed.terminate()
        timer = threading.Timer(self.grace_period, self._force_kill, args=(managed,))
        timer.daemon = True
        timer.start()
        return True

    def _force_kill(self, managed):
        # The slot may already hold a newer process; only kill the one we meant.
        if self.session.is_current(managed) and managed.is_alive():
            logger.warning("Sending SIGKILL to process group %s (%s)", managed.pgid, managed.label)
            managed.kill()

"""Running external commands with pluggable streams and rich failure errors."""

from __future__ import annotations

import codecs
import io
import os
import shlex
import subprocess
import sys
import threading
from collections.abc import Callable
from typing import IO, Any, Protocol

from kindtool.concurrent import aggregate_concurrent
from kindtool.errors import with_stack

__all__ = [
    "RunError",
    "Cmd",
    "LocalCmd",
    "LocalCmder",
    "default_cmder",
    "command",
    "pretty_command",
    "run_error_for_error",
    "combined_output_lines",
    "output_lines",
    "output",
    "inherit_output",
    "run_with_stdout_reader",
    "run_with_stdin_writer",
]

_CHUNK = 64 * 1024


def pretty_command(name: str, *args: str) -> str:
    """Return the command as a string that could be pasted into a shell."""
    return " ".join(shlex.quote(part) for part in (name, *args))


class RunError(Exception):
    """A command failed to start or exited unsuccessfully."""

    def __init__(
        self,
        command: list[str],
        output: bytes = b"",
        inner: BaseException | None = None,
    ) -> None:
        super().__init__(command, output, inner)
        self.command = list(command)
        self.output = bytes(output)
        self.inner = inner

    def pretty_command(self) -> str:
        """Return the failed command in shell-pasteable form."""
        return pretty_command(self.command[0], *self.command[1:])

    @property
    def cause(self) -> BaseException:
        """The underlying error, or this error when there is none."""
        return self.inner if self.inner is not None else self

    def __str__(self) -> str:
        return f'command "{self.pretty_command()}" failed with error: {self.inner}'


class Cmd(Protocol):
    """A command that can be configured and run somewhere."""

    def run(self) -> None:
        """Run the command, raising an error carrying a RunError on failure."""

    def set_env(self, *args: str) -> Cmd:
        """Set the environment from "key=value" entries."""

    def set_stdin(self, reader: IO[Any] | None) -> Cmd:
        """Set the stream the command reads from."""

    def set_stdout(self, writer: IO[Any] | None) -> Cmd:
        """Set the stream the command's standard output goes to."""

    def set_stderr(self, writer: IO[Any] | None) -> Cmd:
        """Set the stream the command's standard error goes to."""


class _Sink:
    """Forwards raw output bytes to a binary or text writer."""

    def __init__(self, writer: IO[Any]) -> None:
        self.writer = writer
        self._decoder = (
            codecs.getincrementaldecoder("utf-8")("replace")
            if isinstance(writer, io.TextIOBase)
            else None
        )

    def _emit(self, data: Any) -> None:
        self.writer.write(data)
        flush = getattr(self.writer, "flush", None)
        if flush is not None:
            flush()

    def write(self, data: bytes) -> None:
        if self._decoder is None:
            self._emit(data)
            return
        text = self._decoder.decode(data)
        if text:
            self._emit(text)

    def finish(self) -> None:
        if self._decoder is not None:
            tail = self._decoder.decode(b"", final=True)
            if tail:
                self._emit(tail)


class LocalCmd:
    """A command run as a local process."""

    def __init__(self, name: str, *args: str) -> None:
        self.args: list[str] = [name, *args]
        self.env: list[str] | None = None
        self.stdin: IO[Any] | None = None
        self.stdout: IO[Any] | None = None
        self.stderr: IO[Any] | None = None

    def set_env(self, *args: str) -> LocalCmd:
        """Set the environment from "key=value" entries; none means inherit."""
        self.env = list(args) if args else None
        return self

    def set_stdin(self, reader: IO[Any] | None) -> LocalCmd:
        """Set the stream the command reads from."""
        self.stdin = reader
        return self

    def set_stdout(self, writer: IO[Any] | None) -> LocalCmd:
        """Set the stream standard output goes to."""
        self.stdout = writer
        return self

    def set_stderr(self, writer: IO[Any] | None) -> LocalCmd:
        """Set the stream standard error goes to."""
        self.stderr = writer
        return self

    def _env_mapping(self) -> dict[str, str] | None:
        if self.env is None:
            return None
        mapping: dict[str, str] = {}
        for entry in self.env:
            key, sep, value = entry.partition("=")
            if sep:
                mapping[key] = value
        return mapping

    def run(self) -> None:
        """Run the command to completion.

        Output goes to the configured writers and is also captured, combined,
        for the RunError raised (wrapped with a stack) when the command fails.
        """
        combined = bytearray()
        lock = threading.Lock()
        failures: list[BaseException] = []
        shared = self.stdout is self.stderr

        try:
            proc = subprocess.Popen(
                self.args,
                stdin=subprocess.PIPE if self.stdin is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT if shared else subprocess.PIPE,
                env=self._env_mapping(),
            )
        except OSError as exc:
            raise with_stack(RunError(self.args, b"", exc)) from exc

        def pump(source: IO[bytes], writer: IO[Any] | None) -> None:
            sink = _Sink(writer) if writer is not None else None
            try:
                while chunk := source.read1(_CHUNK):
                    with lock:
                        combined.extend(chunk)
                        if sink is not None:
                            sink.write(chunk)
                if sink is not None:
                    with lock:
                        sink.finish()
            except Exception as exc:  # noqa: BLE001 - reported after wait
                failures.append(exc)
                # keep draining so the process never blocks on a full pipe
                while source.read1(_CHUNK):
                    pass
            finally:
                source.close()

        def feed(reader: IO[Any], target: IO[bytes]) -> None:
            try:
                while data := reader.read(_CHUNK):
                    if isinstance(data, str):
                        data = data.encode("utf-8")
                    target.write(data)
                    target.flush()
            except BrokenPipeError:
                pass
            except Exception as exc:  # noqa: BLE001 - reported after wait
                failures.append(exc)
            finally:
                try:
                    target.close()
                except OSError:
                    pass

        threads = [threading.Thread(target=pump, args=(proc.stdout, self.stdout), daemon=True)]
        if not shared:
            threads.append(
                threading.Thread(target=pump, args=(proc.stderr, self.stderr), daemon=True)
            )
        if self.stdin is not None:
            threads.append(
                threading.Thread(target=feed, args=(self.stdin, proc.stdin), daemon=True)
            )
        for thread in threads:
            thread.start()
        returncode = proc.wait()
        for thread in threads:
            thread.join()

        inner: BaseException | None = None
        if returncode != 0:
            inner = subprocess.CalledProcessError(returncode, self.args, bytes(combined))
        elif failures:
            inner = failures[0]
        if inner is not None:
            raise with_stack(RunError(self.args, bytes(combined), inner)) from inner


class LocalCmder:
    """Creates commands that run as local processes."""

    def command(self, name: str, *args: str) -> LocalCmd:
        """Return a new local command for name and args."""
        return LocalCmd(name, *args)


default_cmder = LocalCmder()


def command(name: str, *args: str) -> LocalCmd:
    """Return a command from the default commander."""
    return default_cmder.command(name, *args)


def run_error_for_error(err: BaseException | None) -> RunError | None:
    """Return the deepest RunError in err's cause chain, or None."""
    found: RunError | None = None
    seen: set[int] = set()
    while err is not None and id(err) not in seen:
        seen.add(id(err))
        if isinstance(err, RunError):
            found = err
        nxt = getattr(err, "cause", None)
        err = nxt if isinstance(nxt, BaseException) else None
    return found


def _scan_lines(data: bytes) -> list[str]:
    lines = data.decode("utf-8", "replace").split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def combined_output_lines(cmd: Cmd) -> list[str]:
    """Run cmd and return the lines of its combined stdout and stderr."""
    buffer = io.BytesIO()
    cmd.set_stdout(buffer)
    cmd.set_stderr(buffer)
    cmd.run()
    return _scan_lines(buffer.getvalue())


def output_lines(cmd: Cmd) -> list[str]:
    """Run cmd and return the lines of its stdout."""
    return _scan_lines(output(cmd))


def output(cmd: Cmd) -> bytes:
    """Run cmd and return its stdout."""
    buffer = io.BytesIO()
    cmd.set_stdout(buffer)
    cmd.run()
    return buffer.getvalue()


def inherit_output(cmd: Cmd) -> Cmd:
    """Send cmd's output to this process's stdout and stderr."""
    cmd.set_stderr(sys.stderr)
    cmd.set_stdout(sys.stdout)
    return cmd


def run_with_stdout_reader(cmd: Cmd, reader_func: Callable[[IO[bytes]], object]) -> None:
    """Run cmd with its stdout piped to reader_func, concurrently."""
    read_fd, write_fd = os.pipe()
    reader = open(read_fd, "rb")
    writer = open(write_fd, "wb")
    cmd.set_stdout(writer)

    def consume() -> None:
        with reader:
            reader_func(reader)

    def execute() -> None:
        with writer:
            cmd.run()

    aggregate_concurrent([consume, execute])


def run_with_stdin_writer(cmd: Cmd, writer_func: Callable[[IO[bytes]], object]) -> None:
    """Run cmd with writer_func's output piped to its stdin, concurrently."""
    read_fd, write_fd = os.pipe()
    reader = open(read_fd, "rb")
    writer = open(write_fd, "wb")
    cmd.set_stdin(reader)

    def produce() -> None:
        with writer:
            writer_func(writer)

    def execute() -> None:
        with reader:
            cmd.run()

    aggregate_concurrent([produce, execute])
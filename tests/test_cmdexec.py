import io
import os
import shlex
import subprocess
import sys

import pytest

from kindtool.cmdexec import (
    LocalCmd,
    LocalCmder,
    RunError,
    combined_output_lines,
    command,
    inherit_output,
    output,
    output_lines,
    pretty_command,
    run_error_for_error,
    run_with_stdin_writer,
    run_with_stdout_reader,
)
from kindtool.errors import KindError, wrap

PY = sys.executable


def py(code):
    return command(PY, "-c", code)


COPY_STDIN = (
    "import sys; sys.stdout.buffer.write(sys.stdin.buffer.read()); sys.stdout.flush()"
)


@pytest.mark.parametrize(
    "args",
    [
        ["ls", "-la"],
        ["echo", "hello world"],
        ["sh", "-c", "echo 'quoted' && true"],
        ["cmd", ""],
    ],
)
def test_pretty_command_round_trips_through_shell_split(args):
    assert shlex.split(pretty_command(*args)) == args


def test_pretty_command_leaves_safe_words_alone():
    assert pretty_command("ls", "-la", "/tmp") == "ls -la /tmp"


def test_run_error_message_and_pretty_command():
    err = RunError(["false", "x y"], b"", ValueError("boom"))
    assert err.pretty_command() == "false 'x y'"
    assert str(err) == "command \"false 'x y'\" failed with error: boom"


def test_run_error_cause():
    inner = ValueError("boom")
    assert RunError(["a"], b"", inner).cause is inner
    bare = RunError(["a"])
    assert bare.cause is bare


def test_run_error_for_error_finds_wrapped():
    run_err = RunError(["a"], b"out", ValueError("x"))
    wrapped = wrap(wrap(run_err, "inner"), "outer")
    assert run_error_for_error(wrapped) is run_err
    assert run_error_for_error(run_err) is run_err


def test_run_error_for_error_without_run_error():
    assert run_error_for_error(ValueError("x")) is None
    assert run_error_for_error(None) is None


def test_cmder_builds_local_command():
    cmd = LocalCmder().command("echo", "a", "b")
    assert isinstance(cmd, LocalCmd)
    assert cmd.args == ["echo", "a", "b"]


def test_setters_chain():
    cmd = command("echo")
    buf = io.BytesIO()
    assert cmd.set_stdout(buf) is cmd
    assert cmd.set_stderr(buf) is cmd
    assert cmd.set_stdin(io.BytesIO()) is cmd
    assert cmd.set_env("A=1") is cmd
    assert cmd.stdout is buf


def test_output_returns_stdout_bytes():
    assert output(py("import sys; sys.stdout.write('hi')")) == b"hi"


def test_output_lines_splits_and_strips():
    result = output_lines(py("print('a'); print('b')"))
    assert result == ["a", "b"]


def test_output_lines_empty():
    assert output_lines(py("pass")) == []


def test_combined_output_lines_includes_stderr():
    code = (
        "import sys; sys.stdout.write('out\\n'); sys.stdout.flush(); "
        "sys.stderr.write('err\\n'); sys.stderr.flush()"
    )
    assert combined_output_lines(py(code)) == ["out", "err"]


def test_failing_command_raises_with_run_error():
    code = "import sys; sys.stderr.write('bad thing'); sys.exit(3)"
    cmd = py(code)
    with pytest.raises(KindError) as info:
        cmd.run()
    run_err = run_error_for_error(info.value)
    assert run_err is not None
    assert run_err.command == [PY, "-c", code]
    assert b"bad thing" in run_err.output
    assert isinstance(run_err.inner, subprocess.CalledProcessError)
    assert run_err.inner.returncode == 3


def test_missing_executable_raises():
    with pytest.raises(KindError) as info:
        command("kindtool-no-such-program-xyz").run()
    run_err = run_error_for_error(info.value)
    assert isinstance(run_err.inner, FileNotFoundError)
    assert run_err.output == b""


def test_separate_writers_receive_own_streams_and_capture_both():
    code = (
        "import sys; sys.stdout.write('O'); sys.stdout.flush(); "
        "sys.stderr.write('E'); sys.stderr.flush(); sys.exit(1)"
    )
    out, err = io.BytesIO(), io.BytesIO()
    cmd = py(code).set_stdout(out).set_stderr(err)
    with pytest.raises(KindError) as info:
        cmd.run()
    assert out.getvalue() == b"O"
    assert err.getvalue() == b"E"
    assert sorted(run_error_for_error(info.value).output) == sorted(b"OE")


def test_text_writer_receives_decoded_output():
    buf = io.StringIO()
    py("import sys; sys.stdout.buffer.write('caf\\u00e9'.encode())").set_stdout(buf).run()
    assert buf.getvalue() == "caf\u00e9"


def test_stdin_bytes_reader():
    data = b"some bytes\x00\x01"
    assert output(py(COPY_STDIN).set_stdin(io.BytesIO(data))) == data


def test_stdin_text_reader():
    assert output(py(COPY_STDIN).set_stdin(io.StringIO("text in"))) == b"text in"


def test_set_env_replaces_environment():
    env = ["KINDTOOL_VALUE=from-env"]
    if "SYSTEMROOT" in os.environ:
        env.append("SYSTEMROOT=" + os.environ["SYSTEMROOT"])
    code = "import os; print(os.environ.get('KINDTOOL_VALUE')); print('HOME' in os.environ)"
    lines = output_lines(py(code).set_env(*env))
    assert lines == ["from-env", "False"]


def test_inherit_output_writes_to_process_streams(capsys):
    cmd = py("import sys; sys.stdout.write('to-out'); sys.stderr.write('to-err')")
    assert inherit_output(cmd) is cmd
    cmd.run()
    captured = capsys.readouterr()
    assert captured.out == "to-out"
    assert captured.err == "to-err"


def test_run_with_stdout_reader():
    received = []

    def reader(stream):
        received.append(stream.read())

    result = run_with_stdout_reader(py("import sys; sys.stdout.write('piped')"), reader)
    assert result is None
    assert received == [b"piped"]


def test_run_with_stdout_reader_propagates_command_failure():
    def reader(stream):
        stream.read()

    with pytest.raises(KindError) as info:
        run_with_stdout_reader(py("import sys; sys.exit(2)"), reader)
    assert run_error_for_error(info.value).inner.returncode == 2


def test_run_with_stdin_writer():
    out = io.BytesIO()
    cmd = py(COPY_STDIN).set_stdout(out)

    def writer(stream):
        stream.write(b"payload")

    run_with_stdin_writer(cmd, writer)
    assert out.getvalue() == b"payload"


def test_run_with_stdin_writer_propagates_writer_failure():
    def writer(stream):
        raise ValueError("writer broke")

    with pytest.raises(ValueError, match="writer broke"):
        run_with_stdin_writer(py(COPY_STDIN).set_stdout(io.BytesIO()), writer)
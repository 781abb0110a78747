import io
import os
import threading

import pytest

from cluster_agent.ui import OperatorConsole, colored_text


@pytest.fixture
def pipe_console():
    read_fd, write_fd = os.pipe()
    stream = os.fdopen(read_fd, "r", encoding="utf-8")
    writer = os.fdopen(write_fd, "wb")
    yield OperatorConsole(stream=stream, poll_interval=0.05), writer
    stream.close()
    if not writer.closed:
        writer.close()


def test_reads_lines_then_end_of_input(pipe_console, capsys):
    console, writer = pipe_console
    writer.write(b"ls -l\n\nexit")
    writer.close()
    stop = threading.Event()

    assert console.read_command(stop) == "ls -l"
    assert console.read_command(stop) == ""
    assert console.read_command(stop) == "exit"
    with pytest.raises(EOFError):
        console.read_command(stop)
    assert capsys.readouterr().out.count("[shell]-> ") == 4


def test_stop_unblocks_an_idle_read(pipe_console):
    console, _ = pipe_console
    stop = threading.Event()
    threading.Timer(0.2, stop.set).start()

    assert console.read_command(stop) is None


def test_stream_without_descriptor():
    console = OperatorConsole(stream=io.StringIO("hostname\n"))
    stop = threading.Event()

    assert console.read_command(stop) == "hostname"
    with pytest.raises(EOFError):
        console.read_command(stop)


def test_no_color_when_not_a_terminal():
    assert colored_text("ok", "GREEN", io.StringIO()) == "ok"

"""Tests for build events and sinks."""

import io

import pytest

from bpfbuild.events import BuildEvent, BuildEventSink, DirectiveSink, EventKind, RecordingSink, TeeSink, forward_diagnostics


@pytest.mark.parametrize(
    "event,line",
    [
        (BuildEvent.info("clang", "clang 17.0.6 x86_64"), "bpfbuild:clang=clang 17.0.6 x86_64"),
        (BuildEvent.warning("main.bpf.c:3:5: warning: unused"), "cargo:warning=main.bpf.c:3:5: warning: unused"),
        (BuildEvent.rerun_if_changed("src/bpf/intf.h"), "cargo:rerun-if-changed=src/bpf/intf.h"),
        (BuildEvent.rerun_if_env_changed("BPF_CFLAGS"), "cargo:rerun-if-env-changed=BPF_CFLAGS"),
    ],
)
def test_directive_format(event, line):
    assert DirectiveSink().format(event) == line


def test_directive_sink_writes_lines():
    stream = io.StringIO()
    sink = DirectiveSink(stream)

    sink.emit(BuildEvent.rerun_if_changed("a.h"))
    sink.emit(BuildEvent.rerun_if_changed("b.h"))

    assert stream.getvalue() == "cargo:rerun-if-changed=a.h\ncargo:rerun-if-changed=b.h\n"


def test_directive_sink_custom_prefixes():
    sink = DirectiveSink(io.StringIO(), directive_prefix="cargo::", info_prefix="scx:")

    assert sink.format(BuildEvent.warning("w")) == "cargo::warning=w"
    assert sink.format(BuildEvent.info("cflags", "-O2")) == "scx:cflags=-O2"


def test_directive_sink_defaults_to_stdout(capsys):
    DirectiveSink().emit(BuildEvent.rerun_if_env_changed("BPF_CLANG"))

    captured = capsys.readouterr()
    assert captured.out == "cargo:rerun-if-env-changed=BPF_CLANG\n"
    assert captured.err == ""


def test_recording_sink_values():
    sink = RecordingSink()
    sink.emit(BuildEvent.warning("one"))
    sink.emit(BuildEvent.rerun_if_changed("a.h"))
    sink.emit(BuildEvent.warning("two"))

    assert sink.values(EventKind.WARNING) == ["one", "two"]
    assert sink.values(EventKind.INFO) == []
    assert len(sink.events) == 3


def test_tee_sink_fans_out_in_order():
    first, second = RecordingSink(), RecordingSink()
    event = BuildEvent.warning("w")

    TeeSink([first, second]).emit(event)

    assert first.events == [event]
    assert second.events == [event]


def test_sinks_satisfy_protocol():
    for sink in (DirectiveSink(), RecordingSink(), TeeSink([])):
        assert isinstance(sink, BuildEventSink)


def test_forward_diagnostics_skips_blank_lines():
    sink = RecordingSink()

    count = forward_diagnostics(sink, "first\n\n   \nsecond\n")

    assert count == 2
    assert sink.values(EventKind.WARNING) == ["first", "second"]


def test_forward_diagnostics_none():
    assert forward_diagnostics(RecordingSink(), None) == 0

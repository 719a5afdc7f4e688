import subprocess
import pytest
from unittest.mock import MagicMock, call
from tests.lib import FakeContext, cmd
from fossbot.modules import nettools


@pytest.fixture
def fakerun(monkeypatch):
    run = MagicMock()
    run.return_value.stdout = b"line one\n\nline two\n"
    monkeypatch.setattr(subprocess, "run", run)
    return run


def test_ping(fakerun):
    ctx = FakeContext()
    nettools.ping(ctx, cmd("example.com", command="ping"))
    assert fakerun.call_args[0][0] == ["ping", "-c", "3", "example.com"]
    assert ctx.send_message.call_args_list == [call("#test", "line one"), call("#test", "line two")]


def test_ping6_count(fakerun):
    ctx = FakeContext()
    nettools.ping(ctx, cmd("2001:db8::1 50", command="ping"))
    assert fakerun.call_args[0][0] == ["ping6", "-c", str(nettools.MAXPINGCOUNT), "2001:db8::1"]


@pytest.mark.parametrize("message", [None, "localhost", "-f.example.com", "example.com;reboot", "a.com 1 2",
                                     "a.com x"])
def test_ping_rejected(fakerun, message):
    ctx = FakeContext()
    nettools.ping(ctx, cmd(message, command="ping"))
    fakerun.assert_not_called()


def test_traceroute_private(fakerun):
    ctx = FakeContext()
    nettools.traceroute(ctx, cmd("example.com", command="traceroute"))
    assert fakerun.call_args[0][0] == ["traceroute", "-m", "20", "example.com"]
    assert ctx.send_message.call_args_list == [call("#test", "Printing results privately to chatter"),
                                               call("chatter", "line one"),
                                               call("chatter", "line two")]


def test_traceroute_in_private(fakerun):
    ctx = FakeContext()
    nettools.traceroute(ctx, cmd("2001:db8::1", command="traceroute", target="chatter"))
    assert fakerun.call_args[0][0][0] == "traceroute6"
    assert ctx.send_message.call_args_list[0] == call("chatter", "line one")


def test_dns(fakerun):
    ctx = FakeContext()
    nettools.dns(ctx, cmd("example.com", command="dns"))
    assert fakerun.call_args[0][0] == ["nslookup", "example.com"]


def test_dns_rejected(fakerun):
    ctx = FakeContext()
    nettools.dns(ctx, cmd("2001:db8::1", command="dns"))
    fakerun.assert_not_called()


def test_timeout(fakerun):
    fakerun.side_effect = subprocess.TimeoutExpired(["ping"], 1)
    ctx = FakeContext(config={"timeout": 1})
    nettools.ping(ctx, cmd("example.com", command="ping"))
    assert fakerun.call_args[1]["timeout"] == 1
    ctx.send_message.assert_called_once_with("#test", "ping timed out")


def test_missing_program(fakerun):
    fakerun.side_effect = FileNotFoundError("nslookup")
    ctx = FakeContext()
    nettools.dns(ctx, cmd("example.com", command="dns"))
    ctx.send_message.assert_called_once_with("#test", "nslookup is not available")

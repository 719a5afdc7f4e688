import asyncio
import socket
import pytest
from tests.lib import *  # NOQA - fixtures
from fossbot import FossBot
from fossbot.common import ConfigError
from fossbot.irccore import ConnectionState


def make_config(port, **bot):
    return {
        "connection": {"server": "127.0.0.1", "port": port, "rate_limit": None},
        "user": {"nick": "fossbot", "password": "hunter2"},
        "channels": ["#foss", "#test"],
        "bot": bot,
        "modules": ["info"],
    }


def free_port():
    s = socket.socket()
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    return port


def test_bot_setup(loop):
    bot = FossBot(make_config(6667, max_channels=5, command_prefix="."), loop=loop)
    assert bot.state is ConnectionState.CONNECTING
    assert bot.irc.channels == ["#foss", "#test"]
    assert bot.irc.max_channels == 5
    assert bot.dispatcher.command_prefix == "."
    assert bot.commands.names() == ("fail", "help", "list")
    bot.dispatcher.shutdown()


def test_bad_config(loop):
    with pytest.raises(ConfigError):
        FossBot({"connection": {"server": "irc.example.net"}, "user": {"nick": "fossbot"}}, loop=loop)


def test_session(loop):
    """
    Full session against a scripted server: registration with a nick collision, deferred joins, a PING split across
    writes, a bot command, then the server hangs up.
    """
    received = []

    async def expect(reader, *prefixes):
        waiting = set(prefixes)
        while waiting:
            line = await asyncio.wait_for(reader.readline(), 5)
            if not line:
                return
            line = line.decode("UTF-8").rstrip("\r\n")
            received.append(line)
            waiting = {p for p in waiting if not line.startswith(p)}

    async def handle(reader, writer):
        await expect(reader, "NICK fossbot", "USER")
        writer.write(b":irc.example.net 433 * fossbot :Nickname is already in use\r\n")
        await expect(reader, "NICK fossbot_")
        writer.write(b":irc.example.net 001 fossbot_ :Welcome\r\n:irc.exa")
        await writer.drain()
        await asyncio.sleep(0.05)
        writer.write(b"mple.net 376 fossbot_ :End of /MOTD command.\r\nPI")
        await writer.drain()
        await asyncio.sleep(0.05)
        writer.write(b"NG :irc.example.net\r\n")
        await expect(reader, "JOIN #foss", "JOIN #test", "PONG")
        writer.write(b":chatter!~chat@example.com PRIVMSG #foss :!list\r\n")
        await expect(reader, "PRIVMSG #foss")
        writer.close()

    server = loop.run_until_complete(asyncio.start_server(handle, "127.0.0.1", 0))
    port = server.sockets[0].getsockname()[1]
    bot = FossBot(make_config(port), loop=loop)

    assert bot.run() is False
    server.close()
    loop.run_until_complete(server.wait_closed())

    assert received[:2] == ["NICK fossbot", "USER fossbot 0 * :fossbot"]
    assert received[2] == "NICK fossbot_"
    assert received.index("JOIN #foss") < received.index("JOIN #test")
    assert "PONG :irc.example.net" in received
    assert received[-1] == "PRIVMSG #foss :fail / help / list"
    assert bot.irc.nick == "fossbot_"
    assert bot.state is ConnectionState.DISCONNECTED


def test_connection_refused(loop):
    bot = FossBot(make_config(free_port()), loop=loop)
    assert bot.run() is False
    assert bot.state is ConnectionState.DISCONNECTED


@pytest.mark.parametrize("options,family", [({}, socket.AF_UNSPEC),
                                            ({"force_ipv4": True}, socket.AF_INET),
                                            ({"force_ipv6": True}, socket.AF_INET6),
                                            ({"force_ipv4": True, "force_ipv6": True}, socket.AF_INET6)])
def test_connection_family(loop, options, family):
    config = make_config(6667)
    config["connection"].update(options)
    bot = FossBot(config, loop=loop)
    assert bot.irc.connection_family == family
    bot.dispatcher.shutdown()

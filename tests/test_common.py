import os
import json
import pytest
from fossbot import common
from fossbot.common import ParsedMessage, ConfigError


def test_parse_line():
    assert common.parse_irc_line(":chuck!~chuck@foobar PRIVMSG #jesusandhacking :asdf qwer") == \
        ParsedMessage('chuck!~chuck@foobar', 'PRIVMSG', '#jesusandhacking :asdf qwer', None)


def test_parse_numeric():
    assert common.parse_irc_line(":irc.example.net 433 * fossbot :Nickname is already in use") == \
        ParsedMessage('irc.example.net', '433', '* fossbot :Nickname is already in use', None)


@pytest.mark.parametrize("line", [
    "",
    "NOTICE AUTH :*** Looking up your hostname",
    ":irc.example.net",
    ":irc.example.net NOTICE",
    ":irc.example.net NOTICE ",
    ": NOTICE foo",
])
def test_parse_malformed(line):
    assert common.parse_irc_line(line) is None


def test_parse_does_not_touch_input():
    line = ":chuck!~chuck@foobar PRIVMSG #chan :hello there"
    common.parse_irc_line(line)
    assert line == ":chuck!~chuck@foobar PRIVMSG #chan :hello there"


def test_decode_prefix():
    assert common.decode_prefix("chuck!~chuck@foobar") == common.UserPrefix("chuck", "~chuck", "foobar")
    assert common.decode_prefix("irc.example.net") == common.ServerPrefix("irc.example.net")


def test_format_command():
    assert common.format_command("PRIVMSG", "#chan", "hello") == "PRIVMSG #chan :hello"
    assert common.format_command("JOIN", "#chan") == "JOIN #chan"
    assert common.format_command("JOIN", "#chan", "") == "JOIN #chan"


def test_format_command_flattens_newlines():
    assert common.format_command("PRIVMSG", "#chan", "one\r\nQUIT :two") == "PRIVMSG #chan :one  QUIT :two"


def test_format_command_truncates():
    line = common.format_command("PRIVMSG", "#chan", "a" * 1000)
    assert len(line.encode("UTF-8")) == common.IRCLEN - 2
    assert line.startswith("PRIVMSG #chan :aaa")


def test_format_command_truncates_multibyte():
    line = common.format_command("PRIVMSG", "#chan", "α" * 600)
    assert len(line.encode("UTF-8")) <= common.IRCLEN - 2
    line.encode("UTF-8").decode("UTF-8")


def test_extract_params():
    assert common.extract_params(None) == []
    assert common.extract_params("") == []
    assert common.extract_params("torvalds/linux  5") == ["torvalds/linux", "5"]


def test_burstbucket():
    bucket = common.burstbucket(2, 10.0)
    assert bucket.get() == 0
    assert bucket.get() == 0
    assert bucket.get() > 0


def _config():
    return {"connection": {"server": "irc.example.net", "port": "6667"},
            "user": {"nick": "fossbot"},
            "channels": ["#foss"]}


def test_validate_config():
    config = common.validate_config(_config())
    assert config["connection"]["port"] == 6667
    assert config["user"]["username"] == "fossbot"
    assert config["user"]["realname"] == "fossbot"
    assert config["modules"] == []
    assert config["bot"] == {}


@pytest.mark.parametrize("section,key,value", [
    ("connection", "server", "localhost"),
    ("connection", "server", None),
    ("connection", "server", 1234),
    ("connection", "port", 70000),
    ("connection", "port", "http"),
    ("user", "nick", ""),
])
def test_validate_config_bad(section, key, value):
    config = _config()
    config[section][key] = value
    with pytest.raises(ConfigError):
        common.validate_config(config)


@pytest.mark.parametrize("channels", [["foss"], [1234], [None], [{"#foss": None}]])
def test_validate_config_bad_channel(channels):
    config = _config()
    config["channels"] = channels
    with pytest.raises(ConfigError):
        common.validate_config(config)


def test_load(tmpdir):
    jpath = os.path.join(tmpdir, "bot.json")
    with open(jpath, "w") as f:
        json.dump(_config(), f)
    assert common.load(jpath)["user"]["nick"] == "fossbot"

    ypath = os.path.join(tmpdir, "bot.yml")
    with open(ypath, "w") as f:
        f.write("connection:\n  server: irc.example.net\n  port: 6667\nuser:\n  nick: fossbot\n")
    assert common.load(ypath)["connection"]["port"] == 6667

    with pytest.raises(ConfigError):
        common.load(os.path.join(tmpdir, "bot.ini"))


def test_load_malformed(tmpdir):
    ypath = os.path.join(tmpdir, "bot.yml")
    with open(ypath, "w") as f:
        f.write("connection:\n  server: [irc.example.net\n")
    with pytest.raises(ConfigError):
        common.load(ypath)

    jpath = os.path.join(tmpdir, "bot.json")
    with open(jpath, "w") as f:
        f.write('{"connection": ')
    with pytest.raises(ConfigError):
        common.load(jpath)

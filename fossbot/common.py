from time import time
from math import floor
from json import load as json_load
from collections import namedtuple
import yaml
try:
    import sentry_sdk
except ImportError:
    sentry_sdk = None


IRCLEN = 512
"""Maximum length of a protocol line in bytes, including the trailing CRLF"""

ParsedMessage = namedtuple("ParsedMessage", "sender command message target")
UserPrefix = namedtuple("UserPrefix", "nick username hostname")
ServerPrefix = namedtuple("ServerPrefix", "hostname")


class ConfigError(Exception):
    """
    Exception expressing that the bot's configuration is missing or invalid
    """


def report(exception):
    if sentry_sdk:
        sentry_sdk.capture_exception(exception)


class burstbucket(object):
    def __init__(self, maximum, interval):
        """
        Burst bucket class for rate limiting
        :param maximum: maximum value in the bucket
        :param interval: how often a whole item is added to the bucket
        """
        # How many messages can be bursted
        self.bucket_max = maximum
        # how often the bucket has 1 item added
        self.bucket_period = interval
        # last time the burst bucket was filled
        self.bucket_lastfill = time()

        self.bucket = self.bucket_max

    def get(self):
        """
        Return 0 if no sleeping is necessary to rate limit. Otherwise, return the number of seconds to sleep. This
        method should be called again by the user after sleeping
        """
        since_fill = time() - self.bucket_lastfill
        if since_fill > self.bucket_period:
            # How many complete points are credited
            fills = floor(since_fill / self.bucket_period)
            self.bucket += fills
            if self.bucket > self.bucket_max:
                self.bucket = self.bucket_max
            self.bucket_lastfill += self.bucket_period * fills

        if self.bucket >= 1:
            self.bucket -= 1
            return 0
        return self.bucket_period - since_fill


def load(filepath):
    """Return an object from the passed filepath

    :param filepath: path to a json or yaml file
    :type filepath: str
    :Returns:    | dict
    """
    if filepath.endswith(".json"):
        with open(filepath, 'r') as f:
            try:
                return json_load(f)
            except ValueError as e:
                raise ConfigError("Invalid JSON in %s: %s" % (filepath, e))
    elif filepath.endswith(".yml") or filepath.endswith(".yaml"):
        with open(filepath, 'r') as f:
            try:
                return yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigError("Invalid YAML in %s: %s" % (filepath, e))
    else:
        raise ConfigError("Unknown config format: %s" % filepath)


def validate_config(config):
    """
    Check the required parts of a bot config and fill in the optional sections

    :param config: config dict as returned by :py:func:`load`
    :type config: dict
    :returns: dict -- the same config
    """
    if not isinstance(config, dict):
        raise ConfigError("Config must be a mapping")
    connection = config.get("connection") or {}
    user = config.get("user") or {}
    for section, key in (("connection", "server"), ("connection", "port"), ("user", "nick")):
        if not (config.get(section) or {}).get(key):
            raise ConfigError("Missing required config key %s.%s" % (section, key))
    if not isinstance(connection["server"], str) or "." not in connection["server"]:
        raise ConfigError("Invalid server address: %s" % connection["server"])
    try:
        port = int(connection["port"])
    except (TypeError, ValueError):
        raise ConfigError("Invalid server port: %s" % connection["port"])
    if not 0 < port <= 65535:
        raise ConfigError("Invalid server port: %s" % port)
    connection["port"] = port
    user.setdefault("username", user["nick"])
    user.setdefault("realname", user["username"])
    for channel in config.setdefault("channels", []):
        if not isinstance(channel, str) or not channel.startswith("#"):
            raise ConfigError("Channel names must start with #: %s" % channel)
    config.setdefault("bot", {})
    config.setdefault("modules", [])
    config.setdefault("module_configs", {})
    return config


def parse_irc_line(data):
    """
    Split one line of text irc sent us into sender, command and the remainder. The remainder is kept as a single
    opaque string; splitting it further is up to whoever handles the command.

    Return a ParsedMessage or None if the line is missing any of the three parts

    :param data: the line to process, without the line terminator
    :type data: str
    :return ParsedMessage:"""
    if not data.startswith(":"):
        return None
    parts = data[1:].split(" ", 2)
    if len(parts) < 3 or not all(parts):
        return None
    sender, command, message = parts
    return ParsedMessage(sender, command, message, None)


def decode_prefix(prefix):
    """Given a prefix like nick!username@hostname, return an object with these properties

    :param prefix: the prefix to disassemble
    :type prefix: str
    :returns: object -- an UserPrefix object with the properties `nick`, `username`, `hostname` or a ServerPrefix
    object with the property `hostname`
    """
    if "!" in prefix:
        nick, prefix = prefix.split("!", 1)
        username, _, hostname = prefix.partition("@")
        return UserPrefix(nick, username, hostname)
    else:
        return ServerPrefix(prefix)


def format_command(verb, target, message=None):
    """
    Build an outgoing protocol line, without the CRLF. The ``:message`` part is omitted when message is empty. Line
    breaks are flattened and the result is truncated so the line plus CRLF fits in :py:data:`IRCLEN` bytes.

    :param verb: protocol command, like PRIVMSG
    :type verb: str
    :param target: the command's first argument
    :type target: str
    :param message: optional trailing data
    :type message: str
    """
    if message:
        line = "%s %s :%s" % (verb, target, message)
    else:
        line = "%s %s" % (verb, target)
    line = line.replace("\r", " ").replace("\n", " ")
    return line.encode("UTF-8")[:IRCLEN - 2].decode("UTF-8", "ignore")


def extract_params(message):
    """
    Split the arguments of a bot command on whitespace

    :param message: everything after the command name, or None
    :type message: str
    :returns: list
    """
    if not message:
        return []
    return message.split()

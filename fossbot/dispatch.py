"""
.. module:: Dispatcher
   :synopsis: Routes parsed messages to protocol handlers and bot commands

"""

import re
import copy
import logging
import threading
import traceback
from concurrent.futures import ThreadPoolExecutor
from fossbot.commandtable import CommandTable
from fossbot.common import decode_prefix, report


ACC_REPLY = re.compile(r'^(?P<nick>\S+)(?: -> \S+)? ACC (?P<level>\d+)')
STATUS_REPLY = re.compile(r'^STATUS (?P<nick>\S+) (?P<level>\d+)')


class HandlerContext(object):
    """
    What a bot command handler gets to work with. Holds no reference a handler could use to change connection state:
    only a way to send messages, a snapshot of the bot's nick, a private copy of the handler's module config and the
    auth bridge.

    After the command's deadline passes the context is expired and anything it sends is dropped.
    """

    def __init__(self, core, auth, config=None, commands=()):
        self._core = core
        self._auth = auth
        self.nick = core.get_nick()
        self.config = copy.deepcopy(config or {})
        self.commands = tuple(commands)
        self._expired = threading.Event()
        self.log = logging.getLogger('HandlerContext')

    @property
    def expired(self):
        return self._expired.is_set()

    def expire(self):
        self._expired.set()

    def _can_send(self, line):
        if self.expired:
            self.log.warning("Command timed out, dropping: %s" % line)
            return False
        if not self._core.alive:
            self.log.info("Connection is gone, dropping: %s" % line)
            return False
        return True

    def send_message(self, target, message):
        if self._can_send(message):
            self._core.act_PRIVMSG(target, message)

    def send_notice(self, target, message):
        if self._can_send(message):
            self._core.act_NOTICE(target, message)

    def is_registered_user(self, nick):
        """Blocking NickServ check, see :py:meth:`fossbot.auth.AuthBridge.is_registered_user`"""
        if self.expired:
            self.log.warning("Command timed out, not checking %s" % nick)
            return False
        return self._auth.is_registered_user(nick)


class Dispatcher(object):
    """
    Receives every message from the read loop. Numeric replies go to the connection's state machine, protocol verbs
    to the handlers in :py:attr:`protocol`, which run synchronously on the loop. Bot commands found in channel or
    private messages run on a worker pool so they can block without stalling the loop.

    :param core: the connection
    :type core: fossbot.irccore.IRCCore
    :param commands: bot command table
    :type commands: fossbot.commandtable.CommandTable
    :param auth: auth bridge, fed by NOTICEs from the nick service
    :type auth: fossbot.auth.AuthBridge
    :param module_configs: per module configuration, keyed by module name
    :type module_configs: dict
    """

    def __init__(self, core, commands, auth, module_configs=None, command_prefix="!", workers=8,
                 command_timeout=60.0, version="fossbot", nick_password=None):
        self.core = core
        self.commands = commands
        self.auth = auth
        self.module_configs = module_configs or {}
        self.command_prefix = command_prefix
        self.command_timeout = command_timeout
        self.version = version
        self.nick_password = nick_password

        self.log = logging.getLogger('Dispatcher')

        self.protocol = CommandTable({
            "PRIVMSG": self.on_privmsg,
            "NOTICE": self.on_notice,
            "KICK": self.on_kick,
            "NICK": self.on_nick,
            "ERROR": self.on_error,
        })
        """Protocol verb handlers. These run on the loop thread since they change connection state."""

        self.executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="command")

    def dispatch(self, msg):
        """Route one parsed message

        :param msg: message from the framer
        :type msg: fossbot.common.ParsedMessage"""
        if len(msg.command) == 3 and msg.command.isdigit():
            self.core.numeric_reply(int(msg.command), msg)
            return
        handler = self.protocol.lookup(msg.command)
        if handler is None:
            return
        try:
            handler(msg)
        except Exception as e:
            self.log.warning("Error processing %s: \n%s" % (msg.command, traceback.format_exc()))
            report(e)

    def on_privmsg(self, msg):
        sender = decode_prefix(msg.sender)
        if not hasattr(sender, "nick"):
            return

        # "#channel :!cmd args" or "ournick :!cmd args"
        parts = msg.message.split(" ", 2)
        if len(parts) < 2:
            return
        target = parts[0]
        # private messages are answered privately
        if "#" not in target:
            target = sender.nick
        word = parts[1][1:] if parts[1].startswith(":") else parts[1]
        if not word:
            return
        rest = parts[2] if len(parts) == 3 and parts[2] else None

        if word.startswith(self.command_prefix):
            name = word[len(self.command_prefix):]
            handler = self.commands.lookup(name)
            if handler is None:
                return
            self.spawn(handler, msg._replace(sender=sender.nick, command=name, message=rest, target=target))
        elif word.startswith("\x01"):
            if word[1:].startswith("VERSION"):
                self.core.act_NOTICE(sender.nick, "\x01VERSION %s\x01" % self.version)

    def on_notice(self, msg):
        sender = decode_prefix(msg.sender)
        if not hasattr(sender, "nick") or sender.nick.lower() != self.auth.service.lower():
            return
        target, _, text = msg.message.partition(" ")
        if not text:
            return
        text = text[1:] if text.startswith(":") else text

        match = ACC_REPLY.search(text) or STATUS_REPLY.search(text)
        if match:
            self.auth.deliver(match.group("nick"), int(match.group("level")))
        elif text.startswith("This nickname is registered"):
            if not self.nick_password:
                self.log.info("%s asks us to identify but no password is configured" % sender.nick)
                return
            self.log.info("Identifying to %s" % sender.nick)
            self.core.act_PRIVMSG(sender.nick, "IDENTIFY %s" % self.nick_password, loggable=False)
            self.nick_password = None

    def on_kick(self, msg):
        sender = decode_prefix(msg.sender)
        if not hasattr(sender, "nick"):
            return
        parts = msg.message.split(" ", 2)
        if len(parts) < 2:
            return
        channel, victim = parts[0], parts[1]
        if victim == self.core.get_nick():
            self.core.on_kicked(channel, sender.nick)

    def on_nick(self, msg):
        sender = decode_prefix(msg.sender)
        if hasattr(sender, "nick"):
            self.core.on_nick(sender.nick, msg.message.lstrip(":").strip())

    def on_error(self, msg):
        self.log.error("Server error: %s" % msg.message.lstrip(":"))

    def spawn(self, handler, msg):
        """
        Run a bot command on the worker pool without waiting for it

        :param handler: the command handler, called as handler(ctx, msg)
        :param msg: the command message, with target resolved
        :type msg: fossbot.common.ParsedMessage
        :returns: concurrent.futures.Future or None if the command could not be started
        """
        section = handler.__module__.rsplit(".", 1)[-1]
        ctx = HandlerContext(self.core, self.auth, self.module_configs.get(section), self.commands.names())
        self.log.info("%s called %s%s in %s" % (msg.sender, self.command_prefix, msg.command, msg.target))
        try:
            future = self.executor.submit(self._run, handler, ctx, msg)
        except RuntimeError as e:
            self.log.error("Could not start command %s: %s" % (msg.command, e))
            report(e)
            return None
        if self.command_timeout:
            self.core._loop.call_later(self.command_timeout, self._deadline, future, ctx, msg)
        return future

    def _run(self, handler, ctx, msg):
        try:
            handler(ctx, msg)
        except Exception as e:
            self.log.warning("Error running command %s: \n%s" % (msg.command, traceback.format_exc()))
            report(e)

    def _deadline(self, future, ctx, msg):
        if not future.done():
            self.log.warning("Command %s from %s did not finish within %ss" %
                             (msg.command, msg.sender, self.command_timeout))
            ctx.expire()
            future.cancel()

    def shutdown(self):
        """Stop taking commands. Running commands are not waited for."""
        self.auth.cancel()
        self.executor.shutdown(wait=False, cancel_futures=True)

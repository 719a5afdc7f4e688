"""
.. module:: IRCCore
   :synopsis: IRC connection and session state

"""

import socket
import asyncio
import logging
from enum import Enum
from itertools import count
from fossbot.common import burstbucket, parse_irc_line, format_command, report
from fossbot.framer import MessageFramer, WOULD_BLOCK, CLOSED


RPL_ENDOFMOTD = 376
ERR_NOMOTD = 422
ERR_NICKNAMEINUSE = 433


class ConnectionState(Enum):
    CONNECTING = "connecting"
    REGISTERING = "registering"
    JOINED = "joined"
    DISCONNECTED = "disconnected"


class IRCCore(object):

    def __init__(self, server, port, nick, username, loop, realname=None, password=None, max_channels=10,
                 rejoin_delay=4.0, kick_message="{kicker}: that was rude", rate_limit=True, rate_max=5.0,
                 rate_int=1.1):
        self._loop = loop

        # rate limiting options
        self.rate_limit = rate_limit
        self.rate_max = float(rate_max)
        self.rate_int = float(rate_int)

        self.log = logging.getLogger('IRCCore')
        """Reference to logger object"""

        self.state = ConnectionState.CONNECTING

        self.alive = True
        """False once the session is over"""

        self.server = server
        """Server address"""
        self.port = port
        """Server port"""
        self.password = password
        """Optional server password, sent with PASS during registration"""
        self.connection_family = socket.AF_UNSPEC
        """Socket family. 0 will auto-detect ipv4 or v6. Change this to socket.AF_INET or socket.AF_INET6 force use of
           ipv4 or ipv6."""

        self.nick = None
        self.initial_nick = nick
        self.username = username
        self.realname = realname or username

        self.channels = []
        """Channels we are in, or will join once registered"""
        self.max_channels = max_channels

        self.rejoin_delay = rejoin_delay
        self.kick_message = kick_message

        self.framer = MessageFramer()
        self.dispatcher = None
        """Receives every parsed message. Set by the owner before :py:meth:`loop` runs."""

        self.reader = None
        self.writer = None

        self.outseq = count()
        self.outputq = asyncio.PriorityQueue()

    @property
    def registered(self):
        return self.state is ConnectionState.JOINED

    async def loop(self):
        """
        Connect, register and process server messages until the connection is lost or :py:meth:`kill` is called.
        There is no reconnect; the caller decides what to do once this returns.
        """
        try:
            self.reader, self.writer = await asyncio.open_connection(self.server, port=self.port,
                                                                     family=self.connection_family)
        except (socket.gaierror, ConnectionRefusedError, OSError) as e:
            self.log.error("Could not connect to %s:%s: %s" % (self.server, self.port, e))
            report(e)
            self.disconnected()
            return
        self.log.info("Connected to %s:%s" % (self.server, self.port))
        sender = asyncio.ensure_future(self.outputqueue())
        self.register()
        try:
            while self.alive:
                msg = self.read_message()
                if msg is WOULD_BLOCK:
                    data = await self.reader.read(4096)
                    if data:
                        self.framer.feed(data)
                    else:
                        self.framer.feed_eof()
                    continue
                if msg is CLOSED:
                    if self.alive:
                        self.log.error("IRC connection closed")
                    break
                self.dispatcher.dispatch(msg)
        except (ConnectionResetError, OSError) as e:
            self.log.error("IRC connection lost: %s" % e)
            report(e)
        finally:
            self.disconnected()
            sender.cancel()
            await asyncio.gather(sender, return_exceptions=True)
            self.writer.close()

    def read_message(self):
        """
        Return the next ParsedMessage from the framer, or :py:data:`WOULD_BLOCK` / :py:data:`CLOSED`. Server PINGs are
        answered here and malformed lines are skipped; neither is returned.
        """
        while True:
            line = self.framer.read_line()
            if line is WOULD_BLOCK or line is CLOSED:
                return line
            self.log.debug("<<< {}".format(repr(line)))
            if line.startswith("PING"):
                self.act_PONG(line[5:].lstrip(":"))
                continue
            msg = parse_irc_line(line)
            if msg is not None:
                return msg

    async def outputqueue(self):
        self.bucket = burstbucket(self.rate_max, self.rate_int)
        while True:
            # sleep until the bucket allows us to send
            if self.rate_limit:
                while True:
                    s = self.bucket.get()
                    if s == 0:
                        break
                    else:
                        await asyncio.sleep(s)
            prio, _, line, loggable = await self.outputq.get()
            self.log.debug(">>> {}".format(repr(line) if loggable else "<redacted>"))
            self.outputq.task_done()
            try:
                self.writer.write((line + "\r\n").encode("UTF-8"))
                await self.writer.drain()
            except (ConnectionError, OSError) as e:
                self.log.error("Failed to send message: %s" % e)
                report(e)
                self.disconnected()
                self.writer.close()
                return

    def disconnected(self):
        """Move to the terminal disconnected state. The read loop exits on its next pass."""
        if self.state is not ConnectionState.DISCONNECTED:
            self.log.info("Disconnected from %s:%s" % (self.server, self.port))
        self.state = ConnectionState.DISCONNECTED
        self.alive = False

    async def kill(self, message="Bye"):
        """Send quit message, flush the socket, and close it

        :param message: Quit message to send before disconnecting
        :type message: str
        """
        self.alive = False
        if self.writer is not None and self.state is not ConnectionState.DISCONNECTED:
            try:
                self.writer.write((format_command("QUIT", ":%s" % message) + "\r\n").encode("UTF-8"))
                await self.writer.drain()
            except (ConnectionError, OSError) as e:
                self.log.warning("Could not send QUIT: %s" % e)
            self.writer.close()
        self.disconnected()
        self.log.info("Kill complete")

    def sendRaw(self, data, priority=None, loggable=True):
        """
        Send data on the wire. Lower priorities are sent first. Safe to call from any thread.

        :param data: unicode data to send. will be converted to utf-8
        :param priority: numerical priority value. If not None, the message will likely be sent first. Otherwise, an
                         ever-increasing sequence number is used to maintain order.
        :param loggable: False keeps the line out of the debug log
        """
        seq = next(self.outseq)
        if priority is None:
            priority = seq
        try:
            self._loop.call_soon_threadsafe(self.outputq.put_nowait, (priority, seq, data, loggable))
        except RuntimeError:
            self.log.warning("Event loop is closed, dropping >>> {}".format(repr(data) if loggable else "<redacted>"))

    " State machine "
    def register(self):
        """Start registration: optional PASS, then NICK and USER"""
        self.state = ConnectionState.REGISTERING
        if self.password:
            self.act_PASS(self.password)
        self.set_nick(self.nick or self.initial_nick)
        self.act_USER(self.username, self.realname)

    def set_nick(self, nick):
        """Store and request a nickname

        :param nick: the new nickname
        :type nick: str"""
        if not nick:
            raise ValueError("Nickname must not be empty")
        self.nick = nick
        self.act_NICK(nick)

    def join(self, channel):
        """
        Record a channel and join it. Before registration is complete the channel is only recorded; all recorded
        channels are joined at once when the server finishes its welcome banner.

        :param channel: the channel, starting with #
        :type channel: str
        :returns: bool -- False if the channel limit is reached
        """
        if not channel.startswith("#"):
            raise ValueError("Missing # in channel %s" % channel)
        if len(self.channels) >= self.max_channels:
            self.log.error("Channel limit reached (%s), not joining %s" % (self.max_channels, channel))
            return False
        self.channels.append(channel)
        if self.registered:
            self.act_JOIN(channel)
        return True

    def numeric_reply(self, code, msg=None):
        """React to the numeric replies that change our state

        :param code: the numeric reply code
        :type code: int
        :param msg: the message carrying the reply
        :type msg: ParsedMessage"""
        if code == ERR_NICKNAMEINUSE:
            self.log.warning("Nickname %s is in use" % self.nick)
            self.set_nick(self.nick + "_")
        elif code in (RPL_ENDOFMOTD, ERR_NOMOTD):
            if self.registered:
                return code
            self.state = ConnectionState.JOINED
            self.log.info("Registered as %s, joining %s channels" % (self.nick, len(self.channels)))
            for channel in self.channels:
                self.act_JOIN(channel)
        return code

    def on_kicked(self, channel, kicker):
        """
        We were removed from a channel. Forget it now and join it again after the rejoin delay.

        :param channel: the channel we were kicked from
        :type channel: str
        :param kicker: nick of whoever kicked us
        :type kicker: str
        """
        if channel not in self.channels:
            e = KeyError(channel)
            self.log.warning("Kicked from %s, which is not in our channel list %s" % (channel, self.channels))
            report(e)
            return
        i = self.channels.index(channel)
        self.channels[i] = self.channels[-1]
        self.channels.pop()
        self.log.info("Kicked from %s by %s, rejoining in %ss" % (channel, kicker, self.rejoin_delay))
        self._loop.call_later(self.rejoin_delay, self._rejoin, channel, kicker)

    def _rejoin(self, channel, kicker):
        if not self.alive:
            return
        if self.join(channel):
            self.act_PRIVMSG(channel, self.kick_message.format(kicker=kicker, channel=channel))

    def on_nick(self, old, new):
        """Follow a nick change of ours done by the server"""
        if old == self.nick and new:
            self.log.info("Nick changed from %s to %s" % (old, new))
            self.nick = new

    " Data Methods "
    def get_nick(self):
        """Get the bot's current nick

        :returns: str - the bot's current nickname"""
        return self.nick

    " Action Methods "
    def act_PONG(self, data, priority=1):
        """Use the `/pong` command - respond to server pings

        :param data: the string or number the server sent with it's ping
        :type data: str"""
        self.sendRaw(format_command("PONG", ":%s" % data), priority)

    def act_PASS(self, password, priority=1):
        """
        Send server password, for use on connection
        """
        self.sendRaw(format_command("PASS", password), priority, loggable=False)

    def act_USER(self, username, realname, priority=2):
        """Use the USER protocol command. Used during connection

        :param username: the bot's username
        :type username: str
        :param realname: the bot's realname
        :type realname: str"""
        self.sendRaw(format_command("USER", "%s 0 *" % username, realname), priority)

    def act_NICK(self, newNick, priority=2):
        """Use the `/nick` command

        :param newNick: new nick for the bot
        :type newNick: str"""
        self.sendRaw(format_command("NICK", newNick), priority)

    def act_JOIN(self, channel, priority=3):
        """Use the `/join` command

        :param channel: the channel to attempt to join
        :type channel: str"""
        self.sendRaw(format_command("JOIN", channel), priority)

    def act_PRIVMSG(self, towho, message, priority=3, loggable=True):
        """Use the `/msg` command

        :param towho: the target #channel or user's name
        :type towho: str
        :param message: the message to send
        :type message: str"""
        self.sendRaw(format_command("PRIVMSG", towho, message), priority, loggable)

    def act_NOTICE(self, towho, message, priority=3):
        """Use the `/notice` command

        :param towho: the target #channel or user's name
        :type towho: str
        :param message: the message to send
        :type message: str"""
        self.sendRaw(format_command("NOTICE", towho, message), priority)


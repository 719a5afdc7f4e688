"""
.. module:: FossBot
   :synopsis: Main IRC bot class

"""

import logging
import asyncio
import importlib
from socket import AF_INET, AF_INET6
from fossbot.auth import AuthBridge
from fossbot.commandtable import CommandTable
from fossbot.common import validate_config
from fossbot.dispatch import Dispatcher
from fossbot.irccore import IRCCore


def load_modules(names):
    """Import the command modules listed in the config

    :param names: module names, either bundled (``web``) or a full dotted path
    :type names: list
    :returns: list -- the imported python modules"""
    modules = []
    for name in names:
        path = name if "." in name else "fossbot.modules.%s" % name
        modules.append(importlib.import_module(path))
    return modules


class FossBot(object):
    """:param botconfig: The configuration of this instance of the bot. Passed by cli.py.
    :type botconfig: dict
    """
    version = "1.0.0"

    def __init__(self, botconfig, loop=None):
        self.botconfig = validate_config(botconfig)

        self.log = logging.getLogger('FossBot')
        """Reference to logger object"""

        self.loop = loop or asyncio.new_event_loop()

        self.quitting = False
        """True once a quit was requested"""

        connection = self.botconfig["connection"]
        user = self.botconfig["user"]
        options = self.botconfig["bot"]

        ratelimit = connection.get("rate_limit", dict(rate_max=5.0, rate_int=1.1))

        """IRC protocol handler"""
        self.irc = IRCCore(server=connection["server"],
                           port=connection["port"],
                           nick=user["nick"],
                           username=user["username"],
                           realname=user["realname"],
                           password=connection.get("password"),
                           loop=self.loop,
                           max_channels=options.get("max_channels", 10),
                           rejoin_delay=options.get("rejoin_delay", 4.0),
                           kick_message=options.get("kick_message", "{kicker}: that was rude"),
                           rate_limit=True if ratelimit else False,
                           rate_max=(ratelimit or {}).get("rate_max", 5.0),
                           rate_int=(ratelimit or {}).get("rate_int", 1.1))
        if connection.get("force_ipv6", False):
            self.irc.connection_family = AF_INET6
        elif connection.get("force_ipv4", False):
            self.irc.connection_family = AF_INET

        self.auth = AuthBridge(self.irc,
                               service=options.get("auth_service", "NickServ"),
                               query=options.get("auth_command", "ACC"),
                               timeout=options.get("auth_timeout", 10.0))

        self.commands = CommandTable.from_modules(load_modules(self.botconfig["modules"]))
        self.log.info("Loaded commands: %s" % ", ".join(self.commands.names()))

        self.dispatcher = Dispatcher(self.irc, self.commands, self.auth,
                                     module_configs=self.botconfig["module_configs"],
                                     command_prefix=options.get("command_prefix", "!"),
                                     workers=options.get("workers", 8),
                                     command_timeout=options.get("command_timeout", 60.0),
                                     version="fossbot %s" % self.version,
                                     nick_password=user.get("password"))
        self.irc.dispatcher = self.dispatcher

        for channel in self.botconfig["channels"]:
            self.irc.join(channel)

    def run(self):
        """
        Connect and run until the connection ends

        :returns: bool -- True if the session ended because we quit, False if the connection failed or was lost
        """
        self.client = self.loop.create_task(self.irc.loop())
        try:
            self.loop.run_until_complete(self.client)
        except KeyboardInterrupt:
            self.log.info("Interrupted, quitting")
            self.quitting = True
            self.loop.run_until_complete(self.irc.kill(message="Interrupted"))
            self.loop.run_until_complete(self.client)
        finally:
            self.dispatcher.shutdown()
            logging.debug("Escaped main loop")
        return self.quitting

    def kill(self, message="Bye"):
        """Quit from another thread

        :param message: Quit message
        :type message: str
        """
        self.quitting = True
        asyncio.run_coroutine_threadsafe(self.irc.kill(message=message), self.loop)

    @property
    def state(self):
        return self.irc.state

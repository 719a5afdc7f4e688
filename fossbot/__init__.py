"""
.. module:: Core
    :synopsis: Core module of the bot

.. automodule:: fossbot.fossbot

.. automodule:: fossbot.irccore

"""

__all__ = ["FossBot", "IRCCore"]

from fossbot.fossbot import FossBot
from fossbot.irccore import IRCCore

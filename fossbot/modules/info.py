#!/usr/bin/env python
"""
.. module:: info
    :synopsis: Command list and canned quotes

"""

import random
from time import sleep
from fossbot.commandtable import command


COLOR = "\x03"
TEAL = "10"
LTCYAN = "11"
PINK = "13"
LTGREEN = "09"
RED = "04"

# Lines of a quote are separated by \n. A color code followed by a digit needs a space in between.
QUOTES = [
    COLOR + TEAL + "The ball is round\n" + COLOR + TEAL + "the pitch is a rectangle\n" +
    COLOR + TEAL + " 11 of them, 11 of us, 23 in total",
    COLOR + LTCYAN + "fail indeed",
    COLOR + PINK + "total\n" + COLOR + PINK + "failure\n",
    COLOR + LTGREEN + "wow, what did you just say\n" + COLOR + LTGREEN + "you left me with my... " +
    COLOR + RED + "program open",
]


@command("list", "help")
def list_commands(ctx, msg):
    ctx.send_message(msg.target, " / ".join(ctx.commands))


@command("fail")
def fail(ctx, msg):
    """Send a random quote, one line per second"""
    lines = [line for line in random.choice(QUOTES).split("\n") if line]
    for num, line in enumerate(lines):
        if num:
            sleep(1)
        ctx.send_message(msg.target, line)

#!/usr/bin/env python
"""
.. module:: nettools
    :synopsis: ping, traceroute and dns lookups from chat

"""

import re
import logging
import subprocess
from fossbot.commandtable import command
from fossbot.common import extract_params


MAXPINGCOUNT = 10
MAXHOPS = 20
DEFAULT_TIMEOUT = 45

HOST_RE = re.compile(r'^[A-Za-z0-9][A-Za-z0-9.:\-]*$')

log = logging.getLogger("Module.nettools")


def pick_program(host, ipv4, ipv6):
    """Return ipv4 or ipv6 depending on what host looks like, None if it looks like neither"""
    if not HOST_RE.match(host):
        return None
    if "." in host:
        return ipv4
    if ":" in host:
        return ipv6
    return None


def print_cmd_output(ctx, target, cmdline):
    """Run cmdline and send each line it prints to target"""
    timeout = ctx.config.get("timeout", DEFAULT_TIMEOUT)
    try:
        result = subprocess.run(cmdline, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, timeout=timeout)
    except FileNotFoundError:
        log.error("%s is not installed" % cmdline[0])
        ctx.send_message(target, "%s is not available" % cmdline[0])
        return
    except subprocess.TimeoutExpired:
        log.warning("%s timed out after %ss" % (" ".join(cmdline), timeout))
        ctx.send_message(target, "%s timed out" % cmdline[0])
        return
    for line in result.stdout.decode("UTF-8", "replace").splitlines():
        if line.strip():
            ctx.send_message(target, line)


@command("ping")
def ping(ctx, msg):
    """ping <host> [count]"""
    args = extract_params(msg.message)
    if len(args) not in (1, 2):
        return
    program = pick_program(args[0], "ping", "ping6")
    if program is None:
        return
    count = 3
    if len(args) == 2:
        try:
            count = int(args[1])
        except ValueError:
            return
        count = max(1, min(count, MAXPINGCOUNT))
    print_cmd_output(ctx, msg.target, [program, "-c", str(count), args[0]])


@command("traceroute")
def traceroute(ctx, msg):
    """traceroute <host>, results are sent privately"""
    args = extract_params(msg.message)
    if len(args) != 1:
        return
    program = pick_program(args[0], "traceroute", "traceroute6")
    if program is None:
        return
    if msg.target.startswith("#"):
        ctx.send_message(msg.target, "Printing results privately to %s" % msg.sender)
    print_cmd_output(ctx, msg.sender, [program, "-m", str(MAXHOPS), args[0]])


@command("dns")
def dns(ctx, msg):
    args = extract_params(msg.message)
    if len(args) != 1 or "." not in args[0] or not HOST_RE.match(args[0]):
        return
    print_cmd_output(ctx, msg.target, ["nslookup", args[0]])

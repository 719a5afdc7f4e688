#!/usr/bin/env python
"""
.. module:: web
    :synopsis: URL shortening and GitHub commit listing

"""

import logging
import requests
from fossbot.commandtable import command
from fossbot.common import extract_params


SHORTENER_URL = "https://is.gd/create.php"
GITHUB_API = "https://api.github.com/repos/%s/commits"
MAXCOMMITS = 10
TIMEOUT = 10

COLOR = "\x03"
RESETCOLOR = "\x0f"
PURPLE = "06"
ORANGE = "07"
BLUE = "12"

log = logging.getLogger("Module.web")


def shorten_url(url):
    """Return a short link for url, or None if the shortener failed"""
    try:
        r = requests.get(SHORTENER_URL, params={"format": "simple", "url": url}, timeout=TIMEOUT)
    except requests.exceptions.RequestException as e:
        log.warning("Could not shorten %s: %s" % (url, e))
        return None
    if r.status_code != 200:
        log.warning("Could not shorten %s: HTTP %s" % (url, r.status_code))
        return None
    return r.text.strip()


@command("url")
def url(ctx, msg):
    args = extract_params(msg.message)
    if len(args) != 1 or "." not in args[0]:
        return
    short_url = shorten_url(args[0])
    if short_url:
        ctx.send_message(msg.target, short_url)


@command("github")
def github(ctx, msg):
    """github <user/repo> [count]"""
    args = extract_params(msg.message)
    if len(args) not in (1, 2) or "/" not in args[0]:
        return
    commits = 1
    if len(args) == 2:
        try:
            commits = int(args[1])
        except ValueError:
            return
        commits = max(1, min(commits, MAXCOMMITS))

    try:
        r = requests.get(GITHUB_API % args[0], params={"per_page": commits}, timeout=TIMEOUT)
        r.raise_for_status()
        data = r.json()
    except (requests.exceptions.RequestException, ValueError) as e:
        log.warning("Could not fetch commits of %s: %s" % (args[0], e))
        ctx.send_message(msg.target, "Could not fetch commits of %s" % args[0])
        return

    for item in data[:commits]:
        sha = item["sha"][:7]
        text = item["commit"]["message"].split("\n")[0]
        author = item["commit"]["author"]["name"]
        link = shorten_url(item["html_url"]) or ""
        ctx.send_message(msg.target, "%s%s[%s]%s %s%s%s --%s%s%s - %s" %
                         (COLOR, PURPLE, sha, RESETCOLOR, text, COLOR, ORANGE, author, COLOR, BLUE, link))

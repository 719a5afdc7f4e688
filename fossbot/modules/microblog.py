#!/usr/bin/env python
"""
.. module:: microblog
    :synopsis: Post a status update from chat. Only users identified to NickServ may post.

Config::

    module_configs:
      microblog:
        url: https://example.social/api/v1/statuses
        token: <bearer token>

"""

import logging
import requests
from fossbot.commandtable import command


MAXSTATUS = 2560
TIMEOUT = 10

log = logging.getLogger("Module.microblog")


@command("tweet")
def tweet(ctx, msg):
    if not msg.message:
        return
    if not ctx.config.get("url"):
        log.error("microblog url is not configured")
        return
    if not ctx.is_registered_user(msg.sender):
        ctx.send_message(msg.target, "%s: you must be identified with NickServ to do that" % msg.sender)
        return
    headers = {}
    if ctx.config.get("token"):
        headers["Authorization"] = "Bearer %s" % ctx.config["token"]
    try:
        r = requests.post(ctx.config["url"], data={"status": msg.message[:MAXSTATUS]}, headers=headers,
                          timeout=TIMEOUT)
    except requests.exceptions.RequestException as e:
        log.warning("Status update failed: %s" % e)
        ctx.send_message(msg.target, "Status update failed")
        return
    if r.status_code in (200, 201):
        ctx.send_message(msg.target, "Status posted")
    else:
        log.warning("Status update failed: HTTP %s" % r.status_code)
        ctx.send_message(msg.target, "Status update failed (HTTP %s)" % r.status_code)

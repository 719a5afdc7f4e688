"""
.. module:: AuthBridge
   :synopsis: Blocking NickServ status queries on top of the asynchronous message stream

"""

import asyncio
import logging
import threading
from time import monotonic
from collections import namedtuple
from concurrent.futures import Future, TimeoutError


REGISTERED_LEVEL = 3
"""NickServ ACC/STATUS level of a user identified to their registered nick"""

PendingAuthQuery = namedtuple("PendingAuthQuery", "nick future")


class AuthBridge(object):
    """
    Ask the nick service whether a user is identified and wait for the answer, which arrives later as an ordinary
    NOTICE and is handed over through :py:meth:`deliver`.

    Only one query may be outstanding per connection. Callers are serialized by a lock, so a second caller waits for
    the first query to resolve (or time out) before its own query is sent.

    :param core: the connection to send queries on
    :type core: fossbot.irccore.IRCCore
    :param service: nick of the services bot
    :type service: str
    :param query: ACC or STATUS, depending on the services package
    :type query: str
    :param timeout: seconds to wait for a reply
    :type timeout: float
    """

    def __init__(self, core, service="NickServ", query="ACC", timeout=10.0):
        self.core = core
        self.service = service
        self.query = query.upper()
        self.timeout = timeout
        self.log = logging.getLogger('AuthBridge')
        self._lock = threading.Lock()
        self._state = threading.Lock()
        self._pending = None
        self._owed = {}
        """Replies still due for queries that were given up on, by lower-cased nick"""

    def is_registered_user(self, nick, timeout=None):
        """
        Return True if the nick service reports nick as identified. Blocks the calling thread; must not be called
        from the event loop thread. Waiting for another query to finish counts against the same timeout.

        :param nick: nick to check
        :type nick: str
        :param timeout: seconds to wait, defaults to the bridge's timeout
        :type timeout: float
        :returns: bool
        """
        timeout = self.timeout if timeout is None else timeout
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is not None and running is self.core._loop:
            raise RuntimeError("is_registered_user would block the event loop")

        deadline = monotonic() + timeout
        if not self._lock.acquire(timeout=timeout):
            self.log.warning("Gave up waiting to query %s for %s, another query is outstanding" %
                             (self.service, nick))
            return False
        try:
            remaining = deadline - monotonic()
            if remaining <= 0:
                self.log.warning("No time left to query %s for %s" % (self.service, nick))
                return False
            future = Future()
            with self._state:
                self._pending = PendingAuthQuery(nick.lower(), future)
            self.core.act_PRIVMSG(self.service, "%s %s" % (self.query, nick))
            try:
                level = future.result(timeout=remaining)
            except TimeoutError:
                self.log.warning("No %s reply from %s for %s after %ss" % (self.query, self.service, nick, timeout))
                self._abandon()
                return False
        finally:
            with self._state:
                self._pending = None
            self._lock.release()
        self.log.info("%s has auth level %s" % (nick, level))
        return level == REGISTERED_LEVEL

    def _abandon(self):
        # the reply to the pending query may still arrive and must not answer a later one
        with self._state:
            pending = self._pending
            if pending is None or pending.future.done():
                return
            self._owed[pending.nick] = self._owed.get(pending.nick, 0) + 1
            self._pending = None

    def deliver(self, nick, level):
        """
        Hand a reply from the nick service to the waiting query. Replies owed to queries that timed out are
        discarded first.

        :param nick: nick the reply is about
        :type nick: str
        :param level: auth level from the reply
        :type level: int
        :returns: bool -- True if a query was waiting for this reply
        """
        nick = nick.lower()
        with self._state:
            owed = self._owed.get(nick, 0)
            if owed:
                if owed == 1:
                    del self._owed[nick]
                else:
                    self._owed[nick] = owed - 1
                self.log.info("Discarding late %s reply for %s" % (self.query, nick))
                return False
            pending = self._pending
            if pending is None or pending.nick != nick:
                self.log.debug("Ignoring uncorrelated %s reply for %s" % (self.query, nick))
                return False
            if pending.future.done():
                return False
            pending.future.set_result(level)
            return True

    def cancel(self):
        """Release a waiting query, e.g. when the connection is gone. The waiter sees level 0."""
        with self._state:
            pending = self._pending
            if pending is not None and not pending.future.done():
                self._owed[pending.nick] = self._owed.get(pending.nick, 0) + 1
                pending.future.set_result(0)

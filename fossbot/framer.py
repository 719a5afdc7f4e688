"""
.. module:: Framer
   :synopsis: Reassembles protocol lines from partial network reads

"""

import logging
from collections import deque
from fossbot.common import IRCLEN


class _Marker(object):
    def __init__(self, name):
        self.name = name

    def __repr__(self):
        return self.name


WOULD_BLOCK = _Marker("WOULD_BLOCK")
"""No complete line is buffered yet, more data must be read"""

CLOSED = _Marker("CLOSED")
"""The stream ended and every complete line was consumed"""


class MessageFramer(object):
    """
    Collects raw bytes from the transport and hands them back one complete line at a time. Bytes of an incomplete line
    are carried over to the next :py:meth:`feed` call.

    :param max_line: longest line accepted, including the line terminator
    :type max_line: int
    """

    def __init__(self, max_line=IRCLEN):
        self.max_line = max_line

        self.pending = bytearray()
        """Bytes of the incomplete line carried over to the next read"""

        self.lines = deque()
        """Complete lines not yet read"""

        self.discarding = False
        """True while skipping the rest of an overlong line"""

        self.eof = False

        self.log = logging.getLogger('Framer')

    def feed(self, data):
        """Add bytes read from the transport

        :param data: raw bytes, any number of lines or a fraction of one
        :type data: bytes"""
        start = 0
        while True:
            end = data.find(b"\n", start)
            if end == -1:
                self._carry(data[start:])
                return
            chunk = data[start:end + 1]
            start = end + 1
            if self.discarding:
                self.discarding = False
                self.pending.clear()
                continue
            if len(self.pending) + len(chunk) > self.max_line:
                self.log.debug("Dropping overlong line")
                self.pending.clear()
                continue
            self.pending.extend(chunk)
            self.lines.append(bytes(self.pending))
            self.pending.clear()

    def _carry(self, tail):
        if self.discarding:
            return
        if len(self.pending) + len(tail) >= self.max_line:
            self.log.debug("Dropping overlong line")
            self.discarding = True
            self.pending.clear()
            return
        self.pending.extend(tail)

    def feed_eof(self):
        """Mark the end of the stream. An unterminated trailing line is discarded."""
        self.eof = True
        self.pending.clear()

    def read_line(self):
        """
        Return the next complete line as text with the line terminator removed, :py:data:`WOULD_BLOCK` if none is
        buffered yet or :py:data:`CLOSED` after the end of the stream.
        """
        while self.lines:
            raw = self.lines.popleft().rstrip(b"\r\n")
            try:
                return raw.decode("UTF-8")
            except UnicodeDecodeError:
                self.log.warning("Dropping line that is not valid UTF-8: %s" % repr(raw))
        if self.eof:
            return CLOSED
        return WOULD_BLOCK

"""
.. module:: CommandTable
   :synopsis: Read-only name to handler mapping

"""

from types import MappingProxyType


ATTR_COMMANDS = "__commands"


class command(object):
    """
    Decorator for registering a bot command handler. Example:

    .. code-block:: python

        @command("url")
        def url(ctx, msg):
            ctx.send_message(msg.target, "...")

    The names are stored in an attribute of the decorated function, which :py:meth:`CommandTable.from_modules`
    scans for.

    :param names: command names this handler answers to, without the command prefix
    :type names: str
    """
    def __init__(self, *names):
        self.names = names

    def __call__(self, func):
        if not hasattr(func, ATTR_COMMANDS):
            setattr(func, ATTR_COMMANDS, list(self.names))
        else:
            getattr(func, ATTR_COMMANDS).extend(self.names)
        return func


class CommandTable(object):
    """
    Immutable mapping of a protocol verb or bot command name to a handler. Built once, looked up by exact,
    case-sensitive name.

    :param handlers: pairs of (name, handler) or a dict
    :type handlers: iterable
    """

    def __init__(self, handlers=()):
        table = {}
        for name, handler in (handlers.items() if isinstance(handlers, dict) else handlers):
            if name in table:
                raise ValueError("Duplicate handler for %s" % name)
            table[name] = handler
        self._table = MappingProxyType(table)

    @classmethod
    def from_modules(cls, modules):
        """
        Build a table from every function tagged with :py:class:`command` in the passed python modules

        :param modules: imported module objects
        :type modules: list
        """
        handlers = []
        for module in modules:
            for attr_name in dir(module):
                attr = getattr(module, attr_name)
                if callable(attr) and hasattr(attr, ATTR_COMMANDS):
                    for name in getattr(attr, ATTR_COMMANDS):
                        handlers.append((name, attr))
        return cls(handlers)

    def lookup(self, name):
        """Return the handler registered for name, or None

        :param name: verb or command name
        :type name: str"""
        return self._table.get(name)

    def names(self):
        """Return the sorted registered names"""
        return tuple(sorted(self._table))

    def __contains__(self, name):
        return name in self._table

    def __len__(self):
        return len(self._table)

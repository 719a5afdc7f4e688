"""
.. module:: modules
    :synopsis: Bot command handlers shipped with the bot

Each module tags its handlers with :py:class:`fossbot.commandtable.command`. Handlers are called as
``handler(ctx, msg)`` on a worker thread, where ``ctx`` is a :py:class:`fossbot.dispatch.HandlerContext` and ``msg``
a :py:class:`fossbot.common.ParsedMessage` whose ``target`` is where replies should go.
"""

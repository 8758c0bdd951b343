"""Command Handler - maps protocol commands onto the session.

Every command yields exactly one event. Errors raised by the session or the
configuration store become the error event of the command that caused them;
the handler itself never lets a recoverable error escape.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..errors import ChannelError, CommandSyntaxError, MonitorError, ProtocolError
from .commands import Command, CommandType
from .events import Event, EventType

if TYPE_CHECKING:
    from ..session import Session

logger = logging.getLogger(__name__)

# Commands accepted before HELLO
_PRE_HELLO = {CommandType.HELLO.value, CommandType.QUIT.value}


class CommandHandler:
    """Handles protocol commands against one session.

    Usage:
        handler = CommandHandler(session)
        event = await handler.handle(Command.parse('HELLO 1 "my-ide"'))

    After QUIT has been handled ``quit_requested`` is True and the caller
    is expected to stop reading commands.
    """

    def __init__(self, session: Session) -> None:
        self._session = session
        self.quit_requested = False

    async def handle(self, command: Command) -> Event:
        """Process a command and return its response event."""
        logger.debug("Handling command: %s %s", command.verb, command.args)
        event_type = command.verb.lower()

        try:
            if not self._session.greeted and command.verb not in _PRE_HELLO:
                raise ProtocolError(f"First command must be HELLO, but got '{command.verb}'")

            match command.verb:
                case CommandType.HELLO.value:
                    return self._hello(command)

                case CommandType.DESCRIBE.value:
                    self._expect_args(command, 0)
                    return Event.describe(self._session.describe())

                case CommandType.CONFIGURE.value:
                    name, value = self._expect_args(command, 2)
                    await self._session.configure(name, value)
                    return Event.ok(EventType.CONFIGURE)

                case CommandType.OPEN.value:
                    client_address, board_port = self._expect_args(command, 2)
                    await self._session.open(client_address, board_port)
                    return Event.ok(EventType.OPEN)

                case CommandType.CLOSE.value:
                    self._expect_args(command, 0)
                    await self._session.close()
                    return Event.ok(EventType.CLOSE)

                case CommandType.QUIT.value:
                    await self._session.quit()
                    self.quit_requested = True
                    return Event.ok(EventType.QUIT)

                case _:
                    raise ProtocolError(f"Command {command.verb} not supported")

        except ProtocolError as e:
            return Event.command_error(e.message)

        except MonitorError as e:
            logger.info("%s failed: %s", command.verb, e.message)
            return Event.failure(event_type, e.message)

        except ChannelError:
            raise

        except Exception as e:
            logger.exception("Error handling %s", command.verb)
            return Event.failure(event_type, f"internal error: {e}")

    def _hello(self, command: Command) -> Event:
        if len(command.args) != 2:
            raise CommandSyntaxError("Invalid HELLO command")
        version_arg, user_agent = command.args
        try:
            version = int(version_arg)
        except ValueError:
            raise CommandSyntaxError(f"Invalid protocol version: {version_arg}") from None
        if version < 1:
            raise CommandSyntaxError(f"Invalid protocol version: {version_arg}")
        return Event.hello(self._session.hello(version, user_agent))

    @staticmethod
    def _expect_args(command: Command, count: int) -> list[str]:
        if len(command.args) != count:
            raise CommandSyntaxError(f"Invalid {command.verb} command")
        return command.args

"""Typed request/response messaging between isolated execution contexts.

Contexts never share objects. Every command is serialized to JSON on the way
in and every reply on the way out, so data crosses a boundary by value only.
Each command carries a correlation id; the sender awaits a future that is
resolved by the one reply carrying the same id, or gives up on timeout.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import uuid
from typing import Annotated, Any, Awaitable, Callable, Literal, Union

from pydantic import Field, TypeAdapter

from personalens.errors import PersonaLensError
from personalens.models import PageSignals, WireModel
from personalens.personas import PersonaId

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return uuid.uuid4().hex


class PingCommand(WireModel):
    action: Literal["ping"] = "ping"
    id: str = Field(default_factory=_new_id)


class AnalyzePageCommand(WireModel):
    action: Literal["analyzePage"] = "analyzePage"
    id: str = Field(default_factory=_new_id)
    persona: PersonaId


class GenerateReportCommand(WireModel):
    action: Literal["generateReport"] = "generateReport"
    id: str = Field(default_factory=_new_id)
    page_data: PageSignals
    persona: PersonaId
    api_key: str = ""


Command = Annotated[
    Union[PingCommand, AnalyzePageCommand, GenerateReportCommand],
    Field(discriminator="action"),
]
_COMMAND_ADAPTER: TypeAdapter[Command] = TypeAdapter(Command)


class Reply(WireModel):
    id: str
    payload: Any = None
    error: str | None = None
    error_type: str | None = None


Listener = Callable[[Any], Union[Awaitable[Any], Any]]


class ChannelError(PersonaLensError):
    """Base class for transport-level failures."""


class NoReceiverError(ChannelError):
    """Raised when nothing is listening on the other end of the channel."""


class ChannelTimeoutError(ChannelError):
    """Raised when a command is not answered within its timeout."""


class CommandFailedError(PersonaLensError):
    """Raised when the receiving context answered with ``{error}``."""

    def __init__(self, message: str, error_type: str | None = None) -> None:
        super().__init__(message)
        self.error_type = error_type


class MessageChannel:
    """One inbound endpoint of a context: a single listener, many correlated callers."""

    def __init__(self, name: str, *, timeout: float = 10.0) -> None:
        self.name = name
        self.timeout = timeout
        self._listener: Listener | None = None
        self._pending: dict[str, asyncio.Future[Reply]] = {}

    @property
    def has_listener(self) -> bool:
        return self._listener is not None

    def listen(self, listener: Listener) -> None:
        self._listener = listener

    def close(self) -> None:
        """Drop the listener, e.g. when the page navigates away."""
        self._listener = None

    async def send(self, command: Any, *, timeout: float | None = None) -> Any:
        """Deliver ``command`` and return the reply payload."""
        if self._listener is None:
            raise NoReceiverError(
                f"Could not establish connection to {self.name}: receiving end does not exist"
            )

        loop = asyncio.get_running_loop()
        future: asyncio.Future[Reply] = loop.create_future()
        self._pending[command.id] = future
        wire = command.model_dump_json(by_alias=True)
        logger.debug("-> %s %s (%s)", self.name, command.action, command.id)
        task = loop.create_task(self._dispatch(self._listener, command.id, wire))

        limit = self.timeout if timeout is None else timeout
        try:
            reply = await asyncio.wait_for(future, limit)
        except asyncio.TimeoutError as exc:
            raise ChannelTimeoutError(
                f"{command.action} to {self.name} timed out after {limit:g}s"
            ) from exc
        finally:
            self._pending.pop(command.id, None)
            if not task.done():
                task.cancel()

        if reply.error is not None:
            raise CommandFailedError(reply.error, reply.error_type)
        return reply.payload

    async def _dispatch(self, listener: Listener, command_id: str, wire: str) -> None:
        try:
            command = _COMMAND_ADAPTER.validate_json(wire)
            result = listener(command)
            if inspect.isawaitable(result):
                result = await result
            reply_wire = Reply(id=command_id, payload=result).model_dump_json(by_alias=True)
        except Exception as exc:
            logger.debug("%s listener failed on %s: %s", self.name, command_id, exc)
            reply_wire = Reply(
                id=command_id, error=str(exc) or type(exc).__name__, error_type=type(exc).__name__
            ).model_dump_json(by_alias=True)
        self._resolve(reply_wire)

    def _resolve(self, wire: str) -> None:
        reply = Reply.model_validate_json(wire)
        future = self._pending.get(reply.id)
        if future is None or future.done():
            logger.debug("Dropping late reply %s on %s", reply.id, self.name)
            return
        future.set_result(reply)

"""
mDNS responder: answers questions about the services in a zone.
"""
import asyncio
from typing import Any

import structlog  # type: ignore[import-not-found]

from .. import codec
from ..config import TransportConfig
from ..discovery.transport import Datagram, MulticastTransport
from ..exceptions import DecodeError, EncodeError, SendError
from ..models.records import AnyRecord, Message
from .zone import Zone

logger = structlog.get_logger(__name__)


class Responder:
    """Serves a zone on the mDNS port until shut down.

    Replies are multicast to the group so every listener benefits, except
    when the asker requested a unicast reply (QU bit) or sent its query from
    a port other than the mDNS port. Such one-shot queriers are not in the
    group and only see replies addressed to them.
    """

    def __init__(self, zone: Zone, transport_config: TransportConfig | None = None):
        self.zone = zone
        self.transport_config = transport_config or TransportConfig()
        self._transport: MulticastTransport | None = None
        self._task: asyncio.Task | None = None
        self.logger = logger.bind(services=[s.instance_addr for s in zone.services])

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def port(self) -> int:
        """Port the responder is actually listening on."""
        if self._transport is None:
            raise RuntimeError("Responder is not started")
        return self._transport.local_port()

    async def start(self) -> None:
        """Open the listening transport and start serving.

        Raises:
            TransportError: if no family could be bound.
        """
        if self._transport is not None:
            return
        self._transport = await MulticastTransport.open(self.transport_config, listen=True)
        self._task = asyncio.create_task(self._serve(self._transport), name="mdns-responder")
        self.logger.info("Responder started", port=self.port)

    async def shutdown(self) -> None:
        """Stop serving. Closing the transport ends the receive loop."""
        if self._transport is None:
            return
        self._transport.close()
        await self._transport.wait_closed()
        if self._task is not None:
            await self._task
        self._transport = None
        self._task = None
        self.logger.info("Responder stopped")

    async def _serve(self, transport: MulticastTransport) -> None:
        while True:
            datagram = await transport.receive()
            if datagram is None:
                return
            try:
                await self.handle_datagram(transport, datagram)
            except Exception as e:
                self.logger.exception("Error handling query", source=datagram.addr[:2], error=str(e))

    def answer(self, query: Message) -> list[AnyRecord]:
        """All zone records matching any question of `query`, without duplicates."""
        answers: list[AnyRecord] = []
        for question in query.questions:
            for record in self.zone.records(question):
                if record not in answers:
                    answers.append(record)
        return answers

    def _pack(self, response: Message) -> bytes:
        try:
            return codec.pack(response)
        except EncodeError:
            if not response.additionals:
                raise
        # Additional records are optional; retry with the answers alone
        self.logger.debug("Response too large, dropping additional records", answers=len(response.answers))
        return codec.pack(response.model_copy(update={"additionals": ()}))

    async def handle_datagram(self, transport: MulticastTransport, datagram: Datagram) -> None:
        log = self.logger.bind(source=datagram.addr[:2])
        try:
            query = codec.unpack(datagram.data)
        except DecodeError as e:
            log.warning("Failed to handle query", error=str(e))
            return
        if query.is_response:
            return  # another responder's announcement

        answers = self.answer(query)
        if not answers:
            return
        additionals = self.zone.additionals(answers)

        unicast = datagram.addr[1] != self.transport_config.port or any(q.unicast for q in query.questions)
        if unicast:
            # Direct replies echo the query id and questions (RFC 6762 6.7)
            response = Message(id=query.id, is_response=True, questions=query.questions,
                               answers=tuple(answers), additionals=tuple(additionals))
        else:
            response = Message(is_response=True, answers=tuple(answers), additionals=tuple(additionals))

        try:
            data = self._pack(response)
        except EncodeError as e:
            log.error("Failed to pack response", error=str(e))
            return

        try:
            if unicast:
                await transport.send_to(data, datagram.addr)
            else:
                await transport.send(data)
        except SendError as e:
            log.warning("Failed to send response", error=str(e), unicast=unicast)
            return
        log.debug("Answered query", questions=[q.name for q in query.questions], answers=len(answers), unicast=unicast)

    async def __aenter__(self) -> "Responder":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.shutdown()

"""
Envelope Server

Serves the binary protocol over plain TCP with asyncio streams. Each
request is one envelope (`u16 type | u32 payload_len | payload`); the
server reads exactly one envelope, hands it to the dispatcher and writes the
response envelope back. Connections stay open for any number of requests.

Configuration Keys
------------------
- server.host              : str (default "0.0.0.0")
- server.port              : int (default 8765)
- server.max_payload_bytes : int (default 65536); larger requests close the
                             connection after an ErrorResp(413)
"""

from __future__ import annotations

import asyncio
import struct
from typing import TYPE_CHECKING, Any, Dict, Optional, Set

from arcade.core.config.manager import ConfigManager
from arcade.core.logging.logger import get_logger
from arcade.protocol.envelope import ErrorResp

if TYPE_CHECKING:
    from arcade.protocol.dispatcher import ProtocolDispatcher

logger = get_logger(__name__)

_HEADER = struct.Struct("<HI")


class EnvelopeServer:
    def __init__(
        self,
        dispatcher: ProtocolDispatcher,
        config_manager: Any = ConfigManager,
    ) -> None:
        self._dispatcher = dispatcher
        self._host = str(config_manager.get("server.host", "0.0.0.0"))
        self._port = int(config_manager.get("server.port", 8765))
        self._max_payload = int(config_manager.get("server.max_payload_bytes", 65536))

        self._server: Optional[asyncio.Server] = None
        self._writers: Set[asyncio.StreamWriter] = set()
        self._connections = 0
        self._active = 0

    @property
    def port(self) -> int:
        """Bound port; differs from the configured one when that is 0."""
        if self._server is not None and self._server.sockets:
            return self._server.sockets[0].getsockname()[1]
        return self._port

    async def start(self) -> None:
        self._server = await asyncio.start_server(
            self._handle_connection, self._host, self._port
        )
        logger.info(
            "EnvelopeServer listening",
            extra={"host": self._host, "port": self.port},
        )

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        # wait_closed() also waits for open connections on newer interpreters.
        for writer in list(self._writers):
            writer.close()
        await self._server.wait_closed()
        self._server = None
        logger.info("EnvelopeServer stopped", extra=self.get_status())

    async def _handle_connection(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        self._connections += 1
        self._active += 1
        self._writers.add(writer)
        peer = writer.get_extra_info("peername")
        logger.debug("Client connected", extra={"peer": str(peer)})

        try:
            while True:
                try:
                    header = await reader.readexactly(_HEADER.size)
                except asyncio.IncompleteReadError:
                    break

                _, size = _HEADER.unpack(header)
                if size > self._max_payload:
                    logger.warning(
                        "Request payload too large; closing connection",
                        extra={"peer": str(peer), "size": size},
                    )
                    writer.write(
                        ErrorResp(code=413, message="Payload too large").to_envelope()
                    )
                    await writer.drain()
                    break

                try:
                    payload = await reader.readexactly(size)
                except asyncio.IncompleteReadError:
                    break

                response = await self._dispatcher.handle(header + payload)
                writer.write(response)
                await writer.drain()
        except ConnectionError as exc:
            logger.debug(
                "Client connection lost",
                extra={"peer": str(peer), "error": str(exc)},
            )
        finally:
            self._active -= 1
            self._writers.discard(writer)
            writer.close()
            try:
                await writer.wait_closed()
            except ConnectionError:
                pass

    def get_status(self) -> Dict[str, Any]:
        return {
            "listening": self._server is not None,
            "port": self.port,
            "connections_total": self._connections,
            "connections_active": self._active,
        }

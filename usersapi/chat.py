"""TCP chat relay that rebroadcasts each message to every connected client.

Messages are framed as a two-byte big-endian length followed by that many
bytes of UTF-8 text. Every frame a client sends is relayed to all connected
clients, the sender included. A client is dropped when it closes its end of
the connection or sends a malformed frame.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import struct
from contextlib import suppress
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

logger = logging.getLogger("usersapi.chat")

DEFAULT_CHAT_HOST = "0.0.0.0"
DEFAULT_CHAT_PORT = 4000
MAX_MESSAGE_BYTES = 0xFFFF

_LENGTH = struct.Struct(">H")


class ChatProtocolError(ValueError):
    """Raised for frames that cannot be encoded or decoded."""


def encode_message(text: str) -> bytes:
    payload = text.encode("utf-8")
    if len(payload) > MAX_MESSAGE_BYTES:
        raise ChatProtocolError(f"Message is {len(payload)} bytes; the limit is {MAX_MESSAGE_BYTES}")
    return _LENGTH.pack(len(payload)) + payload


async def read_message(reader: asyncio.StreamReader) -> Optional[str]:
    """Read one frame, returning ``None`` on a clean end of stream.

    A stream that ends part-way through a frame raises
    :class:`asyncio.IncompleteReadError`.
    """

    try:
        header = await reader.readexactly(_LENGTH.size)
    except asyncio.IncompleteReadError as exc:
        if exc.partial:
            raise
        return None
    (length,) = _LENGTH.unpack(header)
    payload = await reader.readexactly(length)
    try:
        return payload.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ChatProtocolError("Message is not valid UTF-8") from exc


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ChatClient:
    """A connected client and the stream used to write to it."""

    client_id: int
    address: str
    writer: asyncio.StreamWriter
    connected_at: datetime = field(default_factory=_utcnow)


class ChatRelay:
    """Tracks connected clients and fans messages out to all of them."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._clients: Dict[int, ChatClient] = {}
        self._ids = itertools.count(1)

    async def register(self, writer: asyncio.StreamWriter) -> ChatClient:
        peer = writer.get_extra_info("peername")
        address = f"{peer[0]}:{peer[1]}" if isinstance(peer, tuple) else str(peer)
        async with self._lock:
            client = ChatClient(client_id=next(self._ids), address=address, writer=writer)
            self._clients[client.client_id] = client
        logger.info("Accepted a connection from %s", address)
        return client

    async def unregister(self, client_id: int) -> Optional[ChatClient]:
        async with self._lock:
            client = self._clients.pop(client_id, None)
        if client is not None:
            client.writer.close()
            with suppress(ConnectionError, OSError):
                await client.writer.wait_closed()
        return client

    async def clients(self) -> List[ChatClient]:
        async with self._lock:
            return list(self._clients.values())

    async def broadcast(self, text: str) -> int:
        """Send ``text`` to every client and return how many received it."""

        frame = encode_message(text)
        delivered = 0
        failed: List[ChatClient] = []
        for client in await self.clients():
            try:
                client.writer.write(frame)
                await client.writer.drain()
            except (ConnectionError, OSError):
                logger.warning("Failed to write to %s; dropping client", client.address)
                failed.append(client)
                continue
            delivered += 1
        for client in failed:
            await self.unregister(client.client_id)
        return delivered

    async def handle_connection(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        client = await self.register(writer)
        try:
            while True:
                message = await read_message(reader)
                if message is None:
                    logger.info("Disconnecting from %s", client.address)
                    break
                logger.debug("Relaying %d characters from %s", len(message), client.address)
                await self.broadcast(message)
        except ChatProtocolError as exc:
            logger.warning("Dropping %s: %s", client.address, exc)
        except (asyncio.IncompleteReadError, ConnectionError, OSError):
            logger.warning("Connection lost %s", client.address)
        finally:
            await self.unregister(client.client_id)

    async def start(self, host: str = DEFAULT_CHAT_HOST, port: int = DEFAULT_CHAT_PORT) -> asyncio.Server:
        server = await asyncio.start_server(self.handle_connection, host, port)
        sockets = server.sockets or ()
        bound = ", ".join(str(sock.getsockname()) for sock in sockets)
        logger.info("Chat relay listening on %s", bound or f"{host}:{port}")
        return server


async def run_chat_server(
    host: str = DEFAULT_CHAT_HOST,
    port: int = DEFAULT_CHAT_PORT,
    *,
    relay: ChatRelay | None = None,
) -> None:
    """Serve the chat relay until cancelled."""

    relay = relay or ChatRelay()
    server = await relay.start(host, port)
    try:
        async with server:
            await server.serve_forever()
    finally:
        logger.info("Shutting the chat relay down")
        for client in await relay.clients():
            await relay.unregister(client.client_id)


__all__ = [
    "ChatClient",
    "ChatProtocolError",
    "ChatRelay",
    "DEFAULT_CHAT_HOST",
    "DEFAULT_CHAT_PORT",
    "MAX_MESSAGE_BYTES",
    "encode_message",
    "read_message",
    "run_chat_server",
]

"""
In-process publish/subscribe broker speaking a JSON flavour of STOMP over WebSockets.

One instance lives for the lifetime of the application (see main.lifespan)
and is injected wherever publishing is needed. Registry state is only
touched from the event loop, between awaits.
"""
from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from fastapi import WebSocket, status
from pydantic import ValidationError as FrameValidationError
from starlette.websockets import WebSocketState

from ..config import settings
from ..logging_config import logger
from ..schemas.frames import STOMP_VERSION, FrameCommand, StompFrame, encode_body

# Resolves a raw token to a user id, or None when the token is not acceptable.
Authenticator = Callable[[str], Awaitable[Optional[str]]]


@dataclass
class Connection:
    id: str
    websocket: WebSocket
    user_id: str
    subscriptions: Set[str] = field(default_factory=set)


class StompBroker:
    def __init__(
        self,
        authenticator: Authenticator,
        server_name: str = "ConversationService-STOMP/1.0",
        send_timeout: Optional[float] = None,
    ):
        self._authenticate = authenticator
        self.server_name = server_name
        self.send_timeout = send_timeout if send_timeout is not None else settings.BROKER_SEND_TIMEOUT
        self._connections: Dict[str, Connection] = {}
        self._subscriptions: Dict[str, Set[str]] = {}

    # --- introspection ---

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    def subscribers(self, destination: str) -> Set[str]:
        return set(self._subscriptions.get(destination, ()))

    def get_connection(self, connection_id: str) -> Optional[Connection]:
        return self._connections.get(connection_id)

    # --- connection lifecycle ---

    async def accept_connection(self, websocket: WebSocket, token: Optional[str]) -> Optional[str]:
        """
        Authenticate and register a new client connection.

        Anonymous connections are refused: the socket is closed with a policy
        violation before it is accepted.

        Returns:
            The new connection id, or None if the handshake was rejected
        """
        user_id: Optional[str] = None
        if token:
            try:
                user_id = await self._authenticate(token)
            except Exception as e:
                logger.warning(f"Broker handshake authentication error: {e}")
                user_id = None

        if not user_id:
            logger.info("Broker handshake rejected: missing or invalid token")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return None

        await websocket.accept()
        connection_id = uuid.uuid4().hex
        self._connections[connection_id] = Connection(
            id=connection_id, websocket=websocket, user_id=str(user_id)
        )
        logger.info(f"STOMP connection {connection_id} opened for user {user_id}")

        await self._send(self._connections[connection_id], self._connected_frame(user_id))
        return connection_id

    def _connected_frame(self, user_id: str) -> StompFrame:
        return StompFrame(
            command=FrameCommand.CONNECTED,
            version=STOMP_VERSION,
            headers={
                "version": STOMP_VERSION,
                "heart-beat": "0,0",
                "server": self.server_name,
                "user-name": str(user_id),
            },
        )

    async def disconnect(self, connection_id: str) -> None:
        """Forget a connection and every subscription it held. Idempotent."""
        connection = self._connections.pop(connection_id, None)
        if connection is None:
            return
        for destination in list(connection.subscriptions):
            self._remove_subscription(destination, connection_id)
        connection.subscriptions.clear()
        logger.info(f"STOMP connection {connection_id} closed for user {connection.user_id}")

    async def shutdown(self) -> None:
        """Close every open socket and clear the registry."""
        for connection in list(self._connections.values()):
            if connection.websocket.application_state == WebSocketState.CONNECTED:
                try:
                    await connection.websocket.close(code=status.WS_1001_GOING_AWAY)
                except Exception as e:
                    logger.debug(f"Error closing connection {connection.id}: {e}")
        self._connections.clear()
        self._subscriptions.clear()
        logger.info("STOMP broker shut down")

    # --- inbound frames ---

    async def on_frame(self, connection_id: str, raw: str | bytes) -> None:
        """Handle one inbound frame. Malformed frames are logged and dropped."""
        connection = self._connections.get(connection_id)
        if connection is None:
            return

        try:
            frame = StompFrame.parse(raw)
        except (FrameValidationError, ValueError) as e:
            logger.warning(f"Dropping malformed frame from {connection_id}: {e}")
            return

        if frame.command == FrameCommand.SUBSCRIBE:
            if not frame.destination:
                logger.warning(f"SUBSCRIBE without destination from {connection_id}")
                return
            self._add_subscription(frame.destination, connection_id)
            logger.debug(f"User {connection.user_id} subscribed to {frame.destination}")

        elif frame.command == FrameCommand.UNSUBSCRIBE:
            if frame.destination:
                self._remove_subscription(frame.destination, connection_id)

        elif frame.command == FrameCommand.SEND:
            # Application messages only originate server-side
            logger.info(f"Ignoring SEND from user {connection.user_id} to {frame.destination}")

        elif frame.command == FrameCommand.DISCONNECT:
            await self.disconnect(connection_id)

        elif frame.command in (FrameCommand.CONNECT, FrameCommand.STOMP):
            await self._send(connection, self._connected_frame(connection.user_id))

        else:
            logger.warning(f"Unexpected {frame.command.value} frame from {connection_id}")

    def _add_subscription(self, destination: str, connection_id: str) -> None:
        self._subscriptions.setdefault(destination, set()).add(connection_id)
        connection = self._connections.get(connection_id)
        if connection is not None:
            connection.subscriptions.add(destination)

    def _remove_subscription(self, destination: str, connection_id: str) -> None:
        subscribers = self._subscriptions.get(destination)
        if subscribers is not None:
            subscribers.discard(connection_id)
            if not subscribers:
                del self._subscriptions[destination]
        connection = self._connections.get(connection_id)
        if connection is not None:
            connection.subscriptions.discard(destination)

    # --- outbound ---

    async def _send(self, connection: Connection, frame: StompFrame) -> bool:
        websocket = connection.websocket
        if (
            websocket.client_state != WebSocketState.CONNECTED
            or websocket.application_state != WebSocketState.CONNECTED
        ):
            return False
        try:
            await asyncio.wait_for(websocket.send_text(frame.to_json()), timeout=self.send_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Send to connection {connection.id} timed out after {self.send_timeout}s")
            return False
        except Exception as e:
            logger.debug(f"Send to connection {connection.id} failed: {e}")
            return False

    async def publish(
        self, destination: str, payload: Any, headers: Optional[Dict[str, str]] = None
    ) -> int:
        """
        Deliver a MESSAGE frame to every connection subscribed to `destination`.

        Fire-and-forget: sends run concurrently, each bounded by send_timeout.
        Unreachable or stalled sockets are dropped, nothing is raised.

        Returns:
            Number of connections the frame was delivered to
        """
        connection_ids = list(self._subscriptions.get(destination, ()))
        if not connection_ids:
            return 0

        frame_headers = {str(k): str(v) for k, v in (headers or {}).items()}
        # Reserved keys always win over caller headers
        frame_headers.update(
            {
                "destination": destination,
                "content-type": "application/json",
                "message-id": uuid.uuid4().hex,
            }
        )

        try:
            frame = StompFrame(
                command=FrameCommand.MESSAGE,
                headers=frame_headers,
                body=encode_body(payload),
            )
        except Exception as e:
            logger.error(f"Could not encode payload for {destination}: {e}")
            return 0

        connections = [
            self._connections[cid] for cid in connection_ids if cid in self._connections
        ]
        results = await asyncio.gather(*(self._send(c, frame) for c in connections))

        delivered = 0
        for connection, ok in zip(connections, results):
            if ok:
                delivered += 1
            else:
                # Drop broken or stalled connections
                await self.disconnect(connection.id)
        return delivered

"""
WebSocket Heart Rate Collector
Accepts one text-feed client at a time and folds its JSON messages into the status
"""

import logging
from typing import Optional, Union

from pydantic import ValidationError
from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK
from websockets.frames import CloseCode

from iron_heart.coordinator import ErrorPopup, ListeningAddress, TaskCoordinator
from iron_heart.errors import WebsocketSetupError
from iron_heart.heart_rate.feed import JSONHeartRate
from iron_heart.heart_rate.status import BatteryLevel, HeartRateStatus, StatusAggregator

from .config import WebSocketConfig

logger = logging.getLogger(__name__)


class WebsocketActor:
    """
    WebSocket text-feed source.

    Session states per client: handshake (done by the library, failures
    are logged and the server keeps listening), receiving, closing. While
    a client is connected any other client is turned away with close
    code 1013 so the two feeds never interleave.
    """

    def __init__(self, coordinator: TaskCoordinator, config: Optional[WebSocketConfig] = None):
        """
        Args:
            coordinator: Provides the shutdown token and status publishing.
            config: Listener configuration. Defaults to WebSocketConfig().
        """
        self.coordinator = coordinator
        self.config = config if config else WebSocketConfig()
        self.aggregator = StatusAggregator(
            self.config.rr_twitch_threshold,
            initial_battery=BatteryLevel.not_reported(),
        )

        self.server: Optional[Server] = None
        self.local_address: Optional[ListeningAddress] = None
        self._client: Optional[ServerConnection] = None

        self.message_count = 0
        self.invalid_count = 0
        self.client_count = 0

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    async def build(self) -> ListeningAddress:
        """
        Bind the listener and share its address with the UI.

        Raises:
            WebsocketSetupError if the port cannot be bound.
        """
        try:
            self.server = await serve(
                self._handle_client,
                self.config.host,
                self.config.port,
                logger=logger,
            )
        except OSError as e:
            raise WebsocketSetupError(
                f"Failed to bind websocket on {self.config.host}:{self.config.port}: {e}"
            ) from e

        host, port = self.server.sockets[0].getsockname()[:2]
        self.local_address = ListeningAddress(host=host, port=port)
        self.coordinator.broadcaster.publish(self.local_address)
        logger.info(f"✓ Websocket listening on {self.local_address}")
        return self.local_address

    async def run(self):
        """Serve clients until the shutdown token is cancelled."""
        if self.server is None:
            await self.build()

        await self.coordinator.shutdown.cancelled()

        logger.info("Shutting down Websocket server")
        self.server.close()
        await self.server.wait_closed()
        logger.info("✓ Websocket server stopped")

    # -----------------------------------------------------------------------
    # Connection handling
    # -----------------------------------------------------------------------

    async def _handle_client(self, connection: ServerConnection):
        if self._client is not None:
            self.coordinator.notify(ErrorPopup.intermittent(
                f"Rejected websocket client {connection.remote_address}: another client is connected"
            ))
            await connection.close(CloseCode.TRY_AGAIN_LATER, "another client is connected")
            return

        self._client = connection
        self.client_count += 1
        logger.info(f"✓ Websocket client connected: {connection.remote_address}")
        try:
            await self._receive_loop(connection)
        finally:
            self._client = None
            self.coordinator.publish_status(self.aggregator.reset())

    async def _receive_loop(self, connection: ServerConnection):
        shutdown = self.coordinator.shutdown
        while True:
            try:
                cancelled, message = await shutdown.race(connection.recv())
            except ConnectionClosedOK:
                self.coordinator.notify(ErrorPopup.intermittent("Websocket client disconnected"))
                return
            except ConnectionClosed as e:
                self.coordinator.notify(ErrorPopup.intermittent(f"Error receiving message: {e}"))
                return

            if cancelled:
                logger.info("Closing websocket client for shutdown")
                await connection.close(CloseCode.GOING_AWAY, "server shutting down")
                return

            self.handle_message(message)

    def handle_message(self, message: Union[str, bytes]) -> Optional[HeartRateStatus]:
        """
        Decode one frame and publish the resulting status.

        Bad frames are reported and skipped, the connection stays open.

        Args:
            message: Frame payload, str for text frames and bytes for binary.

        Returns:
            The published status, or None if the frame was rejected.
        """
        self.message_count += 1

        if isinstance(message, (bytes, bytearray)):
            self.invalid_count += 1
            self.coordinator.notify(ErrorPopup.user_must_dismiss(
                f"Invalid message type (expected text): {bytes(message[:64])!r}"
            ))
            return None

        try:
            record = JSONHeartRate.model_validate_json(message)
        except ValidationError:
            self.invalid_count += 1
            self.coordinator.notify(ErrorPopup.intermittent(f"Invalid heart rate message: {message}"))
            return None

        status = self.aggregator.apply(record)
        self.coordinator.publish_status(status)
        return status

    def get_status(self) -> dict:
        return {
            'source': 'websocket',
            'address': str(self.local_address) if self.local_address else None,
            'client_connected': self._client is not None,
            'clients_served': self.client_count,
            'messages_received': self.message_count,
            'invalid_messages': self.invalid_count,
        }

    def __repr__(self):
        status = "connected" if self._client is not None else "listening"
        return f"<WebsocketActor(status={status}, port={self.config.port})>"

#!/usr/bin/env python3
"""Main entry point for LoRa link daemon."""

import argparse
import asyncio
import base64
import json
from collections import deque
from datetime import datetime
from typing import Deque, List, Optional

import uvicorn

from . import __version__
from .api import create_app
from .config import Config
from .link import LinkAdapter
from .network import LoopbackTransport, SerialLink, SerialLinkConfig, Transport
from .utils import LoopTimer, get_logger, setup_logging


class LoRaLinkDaemon:
    """Main LoRa link daemon class."""

    def __init__(self, config: Config):
        """
        Initialize LoRa link daemon.

        Args:
            config: Daemon configuration
        """
        self.config = config
        self.logger = get_logger(__name__, port=config.serial.port)
        self.running = False
        self.start_time = datetime.utcnow()

        self.serial: Optional[SerialLink] = None
        self.echo_peer: Optional[LinkAdapter] = None

        if config.serial.offline_mode:
            self.link_transport, peer_transport = LoopbackTransport.pair()
            self.echo_peer = self._create_link(peer_transport)
            self.echo_peer.on_packet_received = self._echo
            peer_transport.on_data = self.echo_peer.bytes_available
        else:
            self.serial = SerialLink(SerialLinkConfig(
                port=config.serial.port,
                baudrate=config.serial.baudrate,
                reconnect_interval=config.serial.reconnect_interval,
            ))
            self.link_transport = self.serial

        self.link = self._create_link(self.link_transport)
        self.link_transport.on_data = self.link.bytes_available

        self.link.on_packet_sent = self.on_packet_sent
        self.link.on_packet_received = self.on_packet_received
        self.link.on_send_progress = self.on_send_progress
        self.link.on_receive_progress = self.on_receive_progress
        self.link.on_error = self.on_link_error

        self.received_packets: Deque[dict] = deque(maxlen=config.api.recent_packets)

        # API
        self.api_app = create_app(self)
        self.websocket_clients: List = []

        self.cleanup_task: Optional[asyncio.Task] = None

    def _create_link(self, transport: Transport) -> LinkAdapter:
        protocol = self.config.protocol
        return LinkAdapter(
            transport,
            LoopTimer(),
            ack_timeout=protocol.ack_timeout,
            max_retries=protocol.max_retries,
            completion=protocol.completion,
            framing=protocol.framing,
            reassembly_timeout=protocol.reassembly_timeout,
            stream_buffer_limit=protocol.stream_buffer_limit
        )

    async def start(self):
        """Start the daemon."""
        self.logger.info("Starting LoRa link daemon", version=__version__,
                         offline=self.config.serial.offline_mode)

        if self.serial:
            self.serial.on_connected = self.on_serial_connected
            self.serial.on_disconnected = self.on_serial_disconnected
            await self.serial.start()

        self.running = True
        self.cleanup_task = asyncio.create_task(self.cleanup_loop())

        self.logger.info("LoRa link daemon started")

    async def stop(self):
        """Stop the daemon."""
        self.logger.info("Stopping LoRa link daemon")
        self.running = False

        if self.cleanup_task:
            self.cleanup_task.cancel()

        self.link.reset()
        if self.echo_peer:
            self.echo_peer.reset()

        if self.serial:
            await self.serial.stop()

        self.logger.info("LoRa link daemon stopped")

    def send_packet(self, data: bytes) -> bool:
        """
        Start sending a packet over the link.

        Args:
            data: Packet payload

        Returns:
            True if the transfer was started
        """
        self.logger.info("Sending packet", size=len(data))
        return self.link.send_packet(data)

    def on_packet_sent(self, success: bool):
        """Callback when a send finishes."""
        if success:
            self.logger.info("Packet delivered")
        else:
            self.logger.warning("Packet delivery failed")
        self._broadcast({'type': 'packet_sent', 'success': success})

    def on_packet_received(self, data: bytes):
        """Callback when a packet has been reassembled."""
        packet = self.serialize_packet_for_client(data)
        self.received_packets.append(packet)
        self.logger.info("Packet received", size=len(data))
        self._broadcast({'type': 'packet_received', 'data': packet})

    def on_send_progress(self, sent: int, total: int):
        """Callback for outbound progress."""
        self._broadcast({'type': 'send_progress', 'sent': sent, 'total': total})

    def on_receive_progress(self, received: int, total: int):
        """Callback for inbound progress."""
        self._broadcast({'type': 'receive_progress', 'received': received, 'total': total})

    def on_link_error(self, message: str):
        """Callback for link errors."""
        self.logger.error("Link error", error=message)
        self._broadcast({'type': 'error', 'message': message})

    def on_serial_connected(self):
        """Callback when the serial port opens."""
        self.logger.info("Serial port connected")

    def on_serial_disconnected(self):
        """Callback when the serial port closes."""
        self.logger.warning("Serial port disconnected")
        self.link.transport_lost()

    def _echo(self, data: bytes):
        """Offline mode peer sends every packet it receives straight back."""
        asyncio.get_running_loop().call_soon(self.echo_peer.send_packet, data)

    async def cleanup_loop(self):
        """Periodically drop stale partial packets."""
        while self.running:
            await asyncio.sleep(self.config.protocol.cleanup_interval)
            if self.link.expire_stale_reassembly():
                self.logger.info("Dropped stale partial packet")

    def _broadcast(self, data: dict):
        if not self.websocket_clients:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        loop.create_task(self.notify_websocket_clients(data))

    async def notify_websocket_clients(self, data: dict):
        """Notify WebSocket clients of a link event."""
        message = json.dumps(data, default=str)
        disconnected = []

        for client in list(self.websocket_clients):
            try:
                await client.send_text(message)
            except Exception as e:
                self.logger.info("WebSocket client dropped during broadcast", error=f"{type(e).__name__}: {e}")
                disconnected.append(client)

        for client in disconnected:
            if client in self.websocket_clients:
                self.websocket_clients.remove(client)

    def get_stats(self) -> dict:
        """Get daemon statistics."""
        uptime = (datetime.utcnow() - self.start_time).total_seconds()

        stats = {
            'uptime_seconds': uptime,
            'received_packets': len(self.received_packets),
            'websocket_clients': len(self.websocket_clients),
            'link': self.link.get_stats(),
        }
        if self.serial:
            stats['serial'] = {
                'bytes_written': self.serial.bytes_written,
                'bytes_read': self.serial.bytes_read,
            }
        return stats

    def serialize_packet_for_client(self, data: bytes) -> dict:
        """Serialize a received packet into the API/WS payload."""
        try:
            text = data.decode('utf-8')
        except UnicodeDecodeError:
            text = None

        return {
            'data': base64.b64encode(data).decode('ascii'),
            'size': len(data),
            'received_at': datetime.utcnow().isoformat(),
            'text': text,
        }


async def run_daemon(config: Config):
    """Run the LoRa link daemon."""
    daemon = LoRaLinkDaemon(config)
    await daemon.start()

    api_config = uvicorn.Config(
        daemon.api_app,
        host=config.api.host,
        port=config.api.port,
        log_level=config.logging.level.lower()
    )
    server = uvicorn.Server(api_config)

    # Uvicorn owns signal handling; stop the daemon once it asks to exit.
    server_task = asyncio.create_task(server.serve())

    try:
        while daemon.running and not getattr(server, "should_exit", False):
            await asyncio.sleep(1)
    finally:
        if daemon.running:
            await daemon.stop()

        await server_task


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="LoRa Link Daemon")
    parser.add_argument(
        '-c', '--config',
        help='Configuration file path',
        default=None
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )
    parser.add_argument(
        '-p', '--port',
        help='Serial device of the LoRa module (overrides config)',
        default=None
    )
    parser.add_argument(
        '--offline',
        action='store_true',
        help='Use a local echo loopback instead of a radio'
    )
    parser.add_argument(
        '--write-config',
        metavar='PATH',
        help='Write the effective configuration to PATH and exit',
        default=None
    )

    args = parser.parse_args()

    config = Config.load_from_file(args.config)

    if args.verbose:
        config.logging.level = "DEBUG"
    if args.port:
        config.serial.port = args.port
    if args.offline:
        config.serial.offline_mode = True

    if args.write_config:
        config.save_to_file(args.write_config)
        print(f"Configuration written to {args.write_config}")
        return

    setup_logging(
        log_level=config.logging.level,
        log_file=config.logging.file,
        max_size=config.logging.max_size,
        backup_count=config.logging.backup_count,
        trace_frames=config.logging.trace_frames
    )

    asyncio.run(run_daemon(config))


if __name__ == "__main__":
    main()

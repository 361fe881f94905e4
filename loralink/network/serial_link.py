"""Serial connection manager for E22-400T22U LoRa USB modules."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

import serial
import serial_asyncio

from .base import Transport


logger = logging.getLogger(__name__)


@dataclass
class SerialLinkConfig:
    """Serial connection configuration."""
    port: str = "/dev/ttyUSB0"
    baudrate: int = 9600
    reconnect_interval: int = 5
    offline_mode: bool = False


class SerialLink(asyncio.Protocol, Transport):
    """
    Manages the serial connection to a LoRa module.

    The port is opened 8N1 without flow control and reopened
    automatically if the device goes away.
    """

    def __init__(self, config: SerialLinkConfig):
        """
        Initialize serial link.

        Args:
            config: Connection configuration
        """
        self.config = config

        self.transport: Optional[serial_asyncio.SerialTransport] = None
        self.connected = False
        self.running = False
        self.reconnect_task: Optional[asyncio.Task] = None
        self._lost: Optional[asyncio.Event] = None

        self.bytes_written = 0
        self.bytes_read = 0

        # Callbacks
        self.on_data: Optional[Callable[[bytes], None]] = None
        self.on_connected: Optional[Callable[[], None]] = None
        self.on_disconnected: Optional[Callable[[], None]] = None

    async def start(self):
        """Start the connection manager."""
        if self.running:
            return

        self.running = True

        if self.config.offline_mode:
            logger.info("Running in offline mode - no serial connection")
            return

        self.reconnect_task = asyncio.create_task(self._reconnect_loop())

    async def stop(self):
        """Stop the connection manager and close the port."""
        self.running = False

        if self.reconnect_task:
            self.reconnect_task.cancel()
            try:
                await self.reconnect_task
            except asyncio.CancelledError:
                pass
            self.reconnect_task = None

        self._close()

    async def _reconnect_loop(self):
        """Open the port and reopen it whenever it is lost."""
        while self.running:
            if not self.connected:
                try:
                    await self._connect()
                except (serial.SerialException, OSError) as e:
                    logger.error(f"Failed to open {self.config.port}: {e}")
                    logger.info(f"Retrying in {self.config.reconnect_interval} seconds...")
                    await asyncio.sleep(self.config.reconnect_interval)
                    continue

            await self._lost.wait()

    async def _connect(self):
        """Open the serial port."""
        logger.info(f"Opening {self.config.port} at {self.config.baudrate} baud")

        self._lost = asyncio.Event()
        loop = asyncio.get_running_loop()
        await serial_asyncio.create_serial_connection(
            loop,
            lambda: self,
            self.config.port,
            baudrate=self.config.baudrate,
            bytesize=serial.EIGHTBITS,
            parity=serial.PARITY_NONE,
            stopbits=serial.STOPBITS_ONE,
            xonxoff=False,
            rtscts=False
        )

    def _close(self):
        if self.transport:
            self.transport.close()
        self.transport = None
        self.connected = False

    # asyncio.Protocol

    def connection_made(self, transport):
        self.transport = transport
        self.connected = True
        logger.info(f"Serial port {self.config.port} open")
        if self.on_connected:
            self.on_connected()

    def data_received(self, data: bytes):
        self.bytes_read += len(data)
        if self.on_data:
            self.on_data(data)

    def connection_lost(self, exc: Optional[Exception]):
        if exc:
            logger.warning(f"Serial port {self.config.port} lost: {exc}")
        else:
            logger.info(f"Serial port {self.config.port} closed")

        self.transport = None
        self.connected = False
        if self._lost:
            self._lost.set()
        if self.on_disconnected:
            self.on_disconnected()

    # Transport

    def write(self, data: bytes) -> bool:
        if not self.connected or not self.transport or self.transport.is_closing():
            logger.warning("Serial port not open - frame not sent")
            return False

        try:
            self.transport.write(data)
        except (serial.SerialException, OSError) as e:
            logger.error(f"Error writing to serial port: {e}")
            return False

        self.bytes_written += len(data)
        return True

    def is_open(self) -> bool:
        return self.connected

    def is_connected(self) -> bool:
        """Check if the serial port is open."""
        return self.connected

    async def wait_connected(self, timeout: Optional[float] = None):
        """
        Wait for the port to open.

        Args:
            timeout: Maximum time to wait in seconds

        Raises:
            TimeoutError: If timeout expires
        """
        loop = asyncio.get_running_loop()
        start_time = loop.time()

        while not self.connected:
            if timeout and loop.time() - start_time >= timeout:
                raise TimeoutError("Timeout waiting for serial port")

            await asyncio.sleep(0.1)

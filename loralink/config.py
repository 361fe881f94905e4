"""Configuration management for LoRa link daemon."""

import os
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .link import FramingMode
from .protocol.frames import MAX_FRAME_SIZE
from .protocol.transmitter import CompletionMode


STANDARD_BAUDRATES = (1200, 2400, 4800, 9600, 19200, 38400, 57600, 115200)


class SerialConfig(BaseSettings):
    """Serial port configuration."""
    port: str = Field(default="/dev/ttyUSB0", description="Serial device of the LoRa module")
    baudrate: int = Field(default=9600, description="UART baud rate")
    reconnect_interval: int = Field(default=5, ge=1, description="Reconnect interval in seconds")
    offline_mode: bool = Field(default=False, description="Run on a local loopback instead of a radio")

    @field_validator('baudrate')
    @classmethod
    def validate_baudrate(cls, v):
        """E22 modules only support the standard UART rates."""
        if v not in STANDARD_BAUDRATES:
            raise ValueError(f"Baud rate must be one of {list(STANDARD_BAUDRATES)}")
        return v


class ProtocolConfig(BaseSettings):
    """Link protocol configuration."""
    ack_timeout: float = Field(default=1.0, gt=0.0, description="Seconds to wait for an ACK")
    max_retries: int = Field(default=5, ge=0, le=50, description="Retransmissions per chunk")
    completion: CompletionMode = Field(
        default=CompletionMode.CHUNK_ACK,
        description="Finish a send on the final chunk ACK or on PACKET_ACK"
    )
    framing: FramingMode = Field(
        default=FramingMode.SINGLE,
        description="One frame per read or buffered stream scanning"
    )
    reassembly_timeout: float = Field(default=300.0, gt=0.0, description="Seconds before a partial packet is dropped")
    stream_buffer_limit: int = Field(default=4 * MAX_FRAME_SIZE, ge=MAX_FRAME_SIZE, description="Max buffered bytes in stream mode")
    cleanup_interval: float = Field(default=30.0, gt=0.0, description="Seconds between stale reassembly checks")


class APIConfig(BaseSettings):
    """API configuration."""
    host: str = Field(default="0.0.0.0", description="API bind address")
    port: int = Field(default=8090, ge=1, le=65535, description="API port")
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8090"],
        description="Allowed CORS origins"
    )
    recent_packets: int = Field(default=100, ge=1, le=10000, description="Received packets kept in memory")


class LoggingConfig(BaseSettings):
    """Logging configuration."""
    level: str = Field(default="INFO", description="Log level")
    file: Optional[str] = Field(default="~/loralinkd/loralinkd.log", description="Log file path")
    max_size: int = Field(default=10485760, description="Max log file size")
    backup_count: int = Field(default=5, description="Number of backup files")
    trace_frames: bool = Field(default=False, description="Log every frame")

    @field_validator('file')
    @classmethod
    def expand_path(cls, v):
        """Expand user path."""
        return os.path.expanduser(v) if v else None

    @field_validator('level')
    @classmethod
    def validate_level(cls, v):
        """Validate log level."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v = v.upper()
        if v not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v


class Config(BaseSettings):
    """Main configuration class."""
    serial: SerialConfig = Field(default_factory=SerialConfig)
    protocol: ProtocolConfig = Field(default_factory=ProtocolConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix='LORALINKD_',
        env_nested_delimiter='__',
        case_sensitive=False
    )

    @classmethod
    def load_from_file(cls, config_path: Optional[str] = None) -> 'Config':
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to config file (uses default locations if None)

        Returns:
            Loaded configuration

        Raises:
            FileNotFoundError: If an explicit config_path does not exist
        """
        if config_path:
            config_file = Path(config_path).expanduser()
            if not config_file.exists():
                raise FileNotFoundError(f"Config file not found: {config_file}")
        else:
            possible_paths = [
                Path("config.yaml"),
                Path("~/loralinkd/config.yaml").expanduser(),
                Path("/etc/loralinkd/config.yaml"),
            ]
            config_file = next((p for p in possible_paths if p.exists()), None)

        if config_file is None:
            return cls()

        with open(config_file, 'r') as f:
            data = yaml.safe_load(f) or {}

        sections = {
            section: values
            for section, values in data.items()
            if isinstance(values, dict)
        }
        return cls(**sections)

    def save_to_file(self, config_path: str):
        """
        Save configuration to YAML file.

        Args:
            config_path: Path to save config file
        """
        config_dict = {
            'serial': self.serial.model_dump(mode='json'),
            'protocol': self.protocol.model_dump(mode='json'),
            'api': self.api.model_dump(mode='json'),
            'logging': self.logging.model_dump(mode='json'),
        }

        config_file = Path(config_path).expanduser()
        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, 'w') as f:
            yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)

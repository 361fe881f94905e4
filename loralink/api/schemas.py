"""Pydantic schemas for API."""

import base64
import binascii
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class PacketRequest(BaseModel):
    """Request to send a packet. Exactly one of data or text is required."""
    data: Optional[str] = Field(default=None, description="Base64 encoded payload")
    text: Optional[str] = Field(default=None, description="UTF-8 text payload")

    @field_validator('data')
    @classmethod
    def validate_base64(cls, v):
        """Ensure data is valid base64."""
        if v is not None:
            try:
                base64.b64decode(v, validate=True)
            except (binascii.Error, ValueError):
                raise ValueError("data must be valid base64")
        return v

    @model_validator(mode='after')
    def check_one_payload(self):
        if (self.data is None) == (self.text is None):
            raise ValueError("Provide exactly one of 'data' or 'text'")
        return self

    def payload(self) -> bytes:
        """Decoded payload bytes."""
        if self.data is not None:
            return base64.b64decode(self.data)
        return self.text.encode('utf-8')


class PacketAccepted(BaseModel):
    """Response for a packet queued for transmission."""
    size: int = Field(..., description="Payload size in bytes")
    chunks: int = Field(..., description="Number of chunks on the air")


class PacketResponse(BaseModel):
    """A received packet."""
    data: str = Field(..., description="Base64 encoded payload")
    size: int = Field(..., description="Payload size in bytes")
    received_at: datetime = Field(..., description="When the packet was reassembled")
    text: Optional[str] = Field(default=None, description="Payload as text if valid UTF-8")


class StatusResponse(BaseModel):
    """Response containing daemon status."""
    version: str = Field(..., description="Daemon version")
    uptime_seconds: float = Field(..., description="Uptime in seconds")
    link_open: bool = Field(..., description="Serial link status")
    sending: bool = Field(..., description="Outbound packet in flight")
    receiving: bool = Field(..., description="Inbound packet partially received")
    port: str = Field(..., description="Serial device")
    stats: dict = Field(..., description="Link statistics")

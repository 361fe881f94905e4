"""REST API routes for LoRa link daemon."""

from typing import List

from fastapi import FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..protocol.chunking import chunk_count
from ..protocol.frames import MAX_CHUNKS, MAX_PAYLOAD
from .schemas import (
    PacketAccepted,
    PacketRequest,
    PacketResponse,
    StatusResponse,
)


MAX_PACKET_SIZE = MAX_CHUNKS * MAX_PAYLOAD


def create_app(daemon) -> FastAPI:
    """
    Create FastAPI application.

    Args:
        daemon: LoRa link daemon instance

    Returns:
        FastAPI application
    """
    app = FastAPI(
        title="LoRa Link Daemon API",
        description="Reliable packet transfer over LoRa serial modules",
        version="v1"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=daemon.config.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.daemon = daemon

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.post("/packets", response_model=PacketAccepted, status_code=202)
    async def send_packet(request: PacketRequest):
        """Start sending a packet. Delivery is reported on /stream."""
        payload = request.payload()

        if len(payload) > MAX_PACKET_SIZE:
            raise HTTPException(
                status_code=413,
                detail=f"Packet of {len(payload)} bytes exceeds {MAX_PACKET_SIZE} bytes"
            )
        if daemon.link.is_sending():
            raise HTTPException(status_code=409, detail="Send already in progress")
        if not daemon.link_transport.is_open():
            raise HTTPException(status_code=503, detail="Serial port not open")

        if not daemon.send_packet(payload):
            raise HTTPException(status_code=503, detail="Packet could not be sent")

        return PacketAccepted(size=len(payload), chunks=chunk_count(len(payload)))

    @app.get("/packets", response_model=List[PacketResponse])
    async def get_packets(
        limit: int = Query(20, ge=1, le=1000, description="Maximum packets to return")
    ):
        """Get recently received packets, newest first."""
        packets = list(daemon.received_packets)[-limit:]
        return [PacketResponse(**p) for p in reversed(packets)]

    @app.get("/status", response_model=StatusResponse)
    async def get_status():
        """Get daemon status and statistics."""
        stats = daemon.get_stats()

        return StatusResponse(
            version=__version__,
            uptime_seconds=stats['uptime_seconds'],
            link_open=daemon.link_transport.is_open(),
            sending=daemon.link.is_sending(),
            receiving=daemon.link.is_receiving(),
            port="loopback" if daemon.config.serial.offline_mode else daemon.config.serial.port,
            stats=stats
        )

    @app.post("/reset")
    async def reset_link():
        """Abandon transfers in flight in both directions."""
        daemon.link.reset()
        return {"success": True}

    @app.websocket("/stream")
    async def websocket_stream(websocket: WebSocket):
        """WebSocket endpoint for live link events."""
        await websocket.accept()

        daemon.websocket_clients.append(websocket)
        daemon.logger.info("WebSocket client connected", client_count=len(daemon.websocket_clients))

        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            daemon.logger.info("WebSocket client disconnected")
        finally:
            if websocket in daemon.websocket_clients:
                daemon.websocket_clients.remove(websocket)

    return app

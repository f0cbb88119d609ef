"""
Live view of a browser tab over a WebSocket.

Frames are captured with CDP ``Page.captureScreenshot`` at a fixed rate and
sent as binary messages; input events coming back from the portal page are
replayed on the tab with ``Input.dispatchMouseEvent`` / ``Input.dispatchKeyEvent``.

Frame protocol: [4 bytes frame number][4 bytes timestamp ms][JPEG data], big-endian.
"""

from __future__ import annotations

import asyncio
import base64
import contextlib
import logging
import struct
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ...core.config import settings

if TYPE_CHECKING:
    from fastapi import WebSocket

logger = logging.getLogger(__name__)


@dataclass
class StreamStats:
    frames_sent: int = 0
    frames_dropped: int = 0
    bytes_sent: int = 0
    start_time: float = field(default_factory=time.time)

    @property
    def duration(self) -> float:
        return time.time() - self.start_time

    @property
    def avg_fps(self) -> float:
        if self.duration > 0:
            return self.frames_sent / self.duration
        return 0.0


def encode_frame(frame_number: int, timestamp: float, data: bytes) -> bytes:
    header = struct.pack(">II", frame_number, int(timestamp * 1000) % (2**32))
    return header + data


class BrowserStreamer:
    """Streams one nodriver tab to one WebSocket until stopped."""

    def __init__(
        self,
        tab: Any,
        fps: int = settings.PORTAL_STREAM_FPS,
        jpeg_quality: int = settings.PORTAL_JPEG_QUALITY,
        buffer_size: int = settings.PORTAL_FRAME_BUFFER_SIZE,
    ) -> None:
        self.tab = tab
        self.fps = fps
        self.jpeg_quality = jpeg_quality
        self._stats = StreamStats()
        self._frame_number = 0
        self._queue: asyncio.Queue[tuple[int, float, bytes]] = asyncio.Queue(maxsize=buffer_size)
        self._tasks: list[asyncio.Task] = []

    async def start_streaming(self, websocket: WebSocket) -> None:
        if self._tasks:
            logger.warning("[PORTAL] Streaming already active")
            return
        self._stats = StreamStats()
        logger.info(f"[PORTAL] Starting stream: fps={self.fps}, quality={self.jpeg_quality}")
        self._tasks = [
            asyncio.create_task(self._capture_loop()),
            asyncio.create_task(self._send_loop(websocket)),
        ]

    async def stop_streaming(self) -> StreamStats:
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks = []
        logger.info(f"[PORTAL] Stream stopped: {self._stats.frames_sent} frames, avg FPS {self._stats.avg_fps:.1f}")
        return self._stats

    async def capture_frame(self) -> bytes:
        from nodriver import cdp

        data = await self.tab.send(cdp.page.capture_screenshot(format_="jpeg", quality=self.jpeg_quality))
        return base64.b64decode(data)

    async def _capture_loop(self) -> None:
        interval = 1.0 / self.fps
        while True:
            start_time = time.time()
            try:
                data = await self.capture_frame()
            except Exception as e:
                logger.debug(f"[PORTAL] Frame capture failed: {e}")
                await asyncio.sleep(interval)
                continue

            self._frame_number += 1
            frame = (self._frame_number, start_time, data)
            # Keep the newest frames when the socket is slower than capture
            if self._queue.full():
                self._queue.get_nowait()
                self._stats.frames_dropped += 1
            self._queue.put_nowait(frame)

            await asyncio.sleep(max(0.0, interval - (time.time() - start_time)))

    async def _send_loop(self, websocket: WebSocket) -> None:
        while True:
            frame_number, timestamp, data = await self._queue.get()
            payload = encode_frame(frame_number, timestamp, data)
            await websocket.send_bytes(payload)
            self._stats.frames_sent += 1
            self._stats.bytes_sent += len(payload)


class RemoteController:
    """Replays portal input events on the tab.

    Events:
    - mouse_move: {x, y}
    - mouse_click: {x, y, button, clickCount}
    - mouse_down/up: {x, y, button}
    - key_down/up: {key, code, modifiers}
    - key_press: {text}
    - scroll: {x, y, deltaX, deltaY}
    """

    def __init__(self, tab: Any) -> None:
        self.tab = tab
        self._last_mouse_pos = (0, 0)

    async def handle_event(self, event: dict[str, Any]) -> None:
        event_type = event.get("type", "")
        handler = {
            "mouse_move": self._handle_mouse_move,
            "mouse_click": self._handle_mouse_click,
            "mouse_down": self._handle_mouse_down,
            "mouse_up": self._handle_mouse_up,
            "key_down": self._handle_key_down,
            "key_up": self._handle_key_up,
            "key_press": self._handle_key_press,
            "scroll": self._handle_scroll,
        }.get(event_type)

        if handler is None:
            logger.debug(f"[PORTAL] Unknown event type: {event_type}")
            return
        await handler(event)

    def _position(self, event: dict) -> tuple[float, float]:
        return event.get("x", self._last_mouse_pos[0]), event.get("y", self._last_mouse_pos[1])

    async def _mouse(
        self,
        type_: str,
        x: float,
        y: float,
        button: str | None = None,
        click_count: int | None = None,
        delta_x: float | None = None,
        delta_y: float | None = None,
    ) -> None:
        from nodriver import cdp

        await self.tab.send(
            cdp.input_.dispatch_mouse_event(
                type_=type_,
                x=x,
                y=y,
                button=cdp.input_.MouseButton(button) if button else None,
                click_count=click_count,
                delta_x=delta_x,
                delta_y=delta_y,
            )
        )

    async def _key(self, type_: str, **kwargs: Any) -> None:
        from nodriver import cdp

        await self.tab.send(cdp.input_.dispatch_key_event(type_=type_, **kwargs))

    async def _handle_mouse_move(self, event: dict) -> None:
        x, y = self._position(event)
        await self._mouse("mouseMoved", x, y)
        self._last_mouse_pos = (x, y)

    async def _handle_mouse_click(self, event: dict) -> None:
        x, y = self._position(event)
        button = event.get("button", "left")
        click_count = event.get("clickCount", 1)
        await self._mouse("mousePressed", x, y, button=button, click_count=click_count)
        await self._mouse("mouseReleased", x, y, button=button, click_count=click_count)

    async def _handle_mouse_down(self, event: dict) -> None:
        x, y = self._position(event)
        await self._mouse("mousePressed", x, y, button=event.get("button", "left"), click_count=1)

    async def _handle_mouse_up(self, event: dict) -> None:
        x, y = self._position(event)
        await self._mouse("mouseReleased", x, y, button=event.get("button", "left"), click_count=1)

    async def _handle_key_down(self, event: dict) -> None:
        await self._key(
            "keyDown",
            key=event.get("key", ""),
            code=event.get("code", ""),
            modifiers=event.get("modifiers", 0),
        )

    async def _handle_key_up(self, event: dict) -> None:
        await self._key(
            "keyUp",
            key=event.get("key", ""),
            code=event.get("code", ""),
            modifiers=event.get("modifiers", 0),
        )

    async def _handle_key_press(self, event: dict) -> None:
        for char in event.get("text", ""):
            await self._key("char", text=char)

    async def _handle_scroll(self, event: dict) -> None:
        x, y = self._position(event)
        await self._mouse("mouseWheel", x, y, delta_x=event.get("deltaX", 0), delta_y=event.get("deltaY", 0))


__all__ = ["BrowserStreamer", "RemoteController", "StreamStats", "encode_frame"]

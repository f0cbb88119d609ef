"""Portal endpoints.

- GET /portal/{token} - Remote control page for an exposed session
- WS /portal/{token}/ws - JPEG frames out, input events in
- GET /notifier-test - Page loaded by the notifier test session

Usage (Frontend):
    const ws = new WebSocket(`ws://${location.host}/portal/${token}/ws`);
    ws.binaryType = 'arraybuffer';
    ws.onmessage = (event) => draw(event.data.slice(8));
    ws.send(JSON.stringify({type: 'mouse_click', x: 100, y: 200}));
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import HTMLResponse

from ..services.browser.streaming import BrowserStreamer, RemoteController

if TYPE_CHECKING:
    from ..services.browser.portal import PortalServer

logger = logging.getLogger(__name__)

router = APIRouter(tags=["portal"])

PORTAL_PAGE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>Epic Games verification</title>
  <style>
    body { margin: 0; background: #121212; color: #eee; font-family: sans-serif; }
    #status { padding: 6px 10px; font-size: 13px; }
    #screen { display: block; max-width: 100vw; cursor: crosshair; outline: none; }
  </style>
</head>
<body>
  <div id="status">Connecting...</div>
  <canvas id="screen" tabindex="0"></canvas>
  <script>
    const canvas = document.getElementById('screen');
    const ctx = canvas.getContext('2d');
    const status = document.getElementById('status');
    const proto = location.protocol === 'https:' ? 'wss' : 'ws';
    const ws = new WebSocket(`${proto}://${location.host}${location.pathname}/ws`);
    ws.binaryType = 'arraybuffer';

    ws.onopen = () => { status.textContent = 'Connected. Complete the verification in the view below.'; };
    ws.onclose = () => { status.textContent = 'Disconnected. The session may have finished.'; };
    ws.onmessage = (event) => {
      const blob = new Blob([event.data.slice(8)], { type: 'image/jpeg' });
      createImageBitmap(blob).then((img) => {
        if (canvas.width !== img.width) { canvas.width = img.width; canvas.height = img.height; }
        ctx.drawImage(img, 0, 0);
      });
    };

    const send = (msg) => { if (ws.readyState === 1) ws.send(JSON.stringify(msg)); };
    const pos = (e) => {
      const r = canvas.getBoundingClientRect();
      return { x: (e.clientX - r.left) * canvas.width / r.width, y: (e.clientY - r.top) * canvas.height / r.height };
    };
    const buttons = ['left', 'middle', 'right'];

    canvas.addEventListener('mousemove', (e) => send({ type: 'mouse_move', ...pos(e) }));
    canvas.addEventListener('mousedown', (e) => { canvas.focus(); send({ type: 'mouse_down', button: buttons[e.button], ...pos(e) }); });
    canvas.addEventListener('mouseup', (e) => send({ type: 'mouse_up', button: buttons[e.button], ...pos(e) }));
    canvas.addEventListener('contextmenu', (e) => e.preventDefault());
    canvas.addEventListener('wheel', (e) => { e.preventDefault(); send({ type: 'scroll', deltaX: e.deltaX, deltaY: e.deltaY, ...pos(e) }); });
    canvas.addEventListener('keydown', (e) => {
      e.preventDefault();
      send({ type: 'key_down', key: e.key, code: e.code });
      if (e.key.length === 1) send({ type: 'key_press', text: e.key });
    });
    canvas.addEventListener('keyup', (e) => { e.preventDefault(); send({ type: 'key_up', key: e.key, code: e.code }); });
  </script>
</body>
</html>
"""

NOTIFIER_TEST_PAGE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>Notifier test</title>
  <style>body { font-family: sans-serif; text-align: center; padding-top: 20vh; }</style>
</head>
<body>
  <h1>Notifier test</h1>
  <p>If you can see this page, notifications are reaching you.</p>
  <button id="confirm" style="font-size: 24px; padding: 12px 32px;">Click to complete the test</button>
  <script>
    document.getElementById('confirm').addEventListener('click', () => {
      const done = document.createElement('h2');
      done.id = 'complete';
      done.textContent = 'Test complete! You can close this page.';
      document.body.appendChild(done);
    });
  </script>
</body>
</html>
"""


def _portal(app: FastAPI) -> PortalServer:
    return app.state.portal


@router.get("/portal/{token}", response_class=HTMLResponse)
async def portal_page(token: str, request: Request) -> HTMLResponse:
    if _portal(request.app).get(token) is None:
        raise HTTPException(status_code=404, detail="Portal not found or already closed")
    return HTMLResponse(PORTAL_PAGE)


@router.get("/notifier-test", response_class=HTMLResponse)
async def notifier_test_page() -> HTMLResponse:
    return HTMLResponse(NOTIFIER_TEST_PAGE)


@router.websocket("/portal/{token}/ws")
async def portal_websocket(websocket: WebSocket, token: str):
    target = _portal(websocket.app).get(token)
    if target is None:
        await websocket.close(code=4404)
        return

    await websocket.accept()
    logger.info(f"[PORTAL] Viewer connected to {token}")

    streamer = BrowserStreamer(target.tab)
    controller = RemoteController(target.tab)
    await streamer.start_streaming(websocket)

    try:
        while True:
            message = await websocket.receive_text()
            try:
                event = json.loads(message)
            except json.JSONDecodeError:
                logger.debug(f"[PORTAL] Ignoring malformed message: {message[:100]}")
                continue
            try:
                await controller.handle_event(event)
            except Exception as e:
                logger.warning(f"[PORTAL] Failed to replay {event.get('type')}: {e}")
    except WebSocketDisconnect:
        logger.info(f"[PORTAL] Viewer disconnected from {token}")
    finally:
        await streamer.stop_streaming()


def create_app(portal: PortalServer) -> FastAPI:
    app = FastAPI(title="freegames portal", docs_url=None, redoc_url=None, openapi_url=None)
    app.state.portal = portal
    app.include_router(router)
    return app


__all__ = ["create_app", "router"]

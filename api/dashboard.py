"""
MMX Uploader Dashboard - FastAPI backend.

Live log/status/run stream over Server-Sent Events, polling controls,
manual row processing and failure screenshot serving.
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import FileResponse, HTMLResponse, StreamingResponse
from pydantic import BaseModel, Field

from core.orchestrator import AutomationOrchestrator

logger = logging.getLogger(__name__)

HEARTBEAT_SECONDS = 30.0

INDEX_HTML = """<!doctype html>
<html>
<head>
  <meta charset="utf-8">
  <title>MMX Uploader</title>
  <style>
    body { font-family: system-ui, sans-serif; margin: 2rem; background: #111; color: #ddd; }
    #status { font-weight: bold; }
    #logs { font-family: monospace; font-size: 12px; white-space: pre-wrap; max-height: 60vh; overflow-y: auto; }
    .error { color: #F44336; } .warn { color: #FFF176; }
    table { border-collapse: collapse; } td, th { padding: 2px 8px; border-bottom: 1px solid #333; }
  </style>
</head>
<body>
  <h1>MMX Donation Uploader</h1>
  <p>Status: <span id="status">idle</span> <span id="detail"></span></p>
  <button onclick="fetch('/api/polling/start', {method: 'POST'})">Start polling</button>
  <button onclick="fetch('/api/polling/stop', {method: 'POST'})">Stop polling</button>
  <h2>Runs</h2>
  <table id="runs"><tr><th>Row</th><th>Client</th><th>Worker</th><th>Stage</th><th>Status</th><th>Error</th></tr></table>
  <h2>Log</h2>
  <div id="logs"></div>
  <script>
    const source = new EventSource('/api/events');
    const runs = {};
    source.addEventListener('log', e => {
      const entry = JSON.parse(e.data);
      const line = document.createElement('div');
      line.className = entry.level;
      line.textContent = `${entry.timestamp} ${entry.level.toUpperCase()} ${entry.message}`;
      const logs = document.getElementById('logs');
      logs.appendChild(line);
      logs.scrollTop = logs.scrollHeight;
    });
    source.addEventListener('status', e => {
      const status = JSON.parse(e.data);
      document.getElementById('status').textContent = status.state;
      document.getElementById('detail').textContent = status.detail || '';
    });
    source.addEventListener('run', e => {
      const run = JSON.parse(e.data);
      runs[run.id] = run;
      const table = document.getElementById('runs');
      table.querySelectorAll('tr.run').forEach(r => r.remove());
      Object.values(runs).sort((a, b) => b.id - a.id).forEach(r => {
        const row = table.insertRow(-1);
        row.className = 'run';
        const shot = r.screenshot_path ? ` <a href="/screenshots/${r.screenshot_path}">screenshot</a>` : '';
        row.innerHTML = `<td>${r.row_number}</td><td>${r.client_name}</td><td>${r.worker_key}</td>` +
          `<td>${r.current_stage}</td><td>${r.status}</td><td>${r.error || ''}${shot}</td>`;
      });
    });
  </script>
</body>
</html>
"""


# === Request Models ===

class StartPollingRequest(BaseModel):
    interval_ms: Optional[int] = Field(None, ge=1000)
    concurrency: Optional[int] = Field(None, ge=1, le=5)


def format_sse(event: str, data: Dict[str, Any]) -> str:
    return f"event: {event}\ndata: {json.dumps(data, default=str)}\n\n"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_app(orchestrator: AutomationOrchestrator, auto_start: Optional[bool] = None) -> FastAPI:
    """
    Build the dashboard app around an orchestrator.

    Args:
        orchestrator: The running system
        auto_start: Start polling on startup (default: AUTO_START_POLLING)
    """
    if auto_start is None:
        auto_start = orchestrator.config.AUTO_START_POLLING

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting MMX Uploader dashboard...")
        await orchestrator.startup()
        if auto_start:
            result = orchestrator.start_polling()
            logger.info(result["message"])
        yield
        logger.info("Shutting down MMX Uploader dashboard...")
        await orchestrator.shutdown()

    app = FastAPI(
        title="MMX Uploader",
        description="Google Sheet to MMX donation upload automation",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator
    background = set()

    @app.get("/", response_class=HTMLResponse)
    async def index():
        return INDEX_HTML

    @app.get("/api/events")
    async def events(request: Request):
        broadcaster = orchestrator.broadcaster
        queue = broadcaster.subscribe()

        async def stream() -> AsyncIterator[str]:
            try:
                # Recent log buffer so new clients get context
                for entry in broadcaster.recent_logs():
                    yield format_sse("log", entry.to_dict())
                yield format_sse("status", {
                    "state": "polling" if orchestrator.scheduler.is_polling else "idle",
                    "timestamp": _now_iso(),
                })

                while True:
                    if await request.is_disconnected():
                        break
                    try:
                        event = await asyncio.wait_for(queue.get(), timeout=HEARTBEAT_SECONDS)
                    except asyncio.TimeoutError:
                        yield ": heartbeat\n\n"
                        continue
                    yield format_sse(event.type, event.payload)
            finally:
                broadcaster.unsubscribe(queue)

        return StreamingResponse(
            stream(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    @app.get("/api/runs")
    async def runs():
        return [run.to_dict() for run in orchestrator.history.history()]

    @app.get("/api/status")
    async def status():
        return orchestrator.status()

    @app.post("/api/polling/start")
    async def start_polling(request: Optional[StartPollingRequest] = None):
        if request and request.concurrency is not None:
            orchestrator.scheduler.concurrency = request.concurrency
        return orchestrator.start_polling(request.interval_ms if request else None)

    @app.post("/api/polling/stop")
    async def stop_polling():
        return orchestrator.stop_polling()

    @app.post("/api/rows/{row}/process", status_code=202)
    async def process_row(row: int):
        if row < 2:
            raise HTTPException(status_code=400, detail="Row must be 2 or greater (row 1 is the header)")
        if orchestrator.scheduler.is_processing:
            raise HTTPException(status_code=409, detail="Poller is processing rows; try again when idle")

        async def _run():
            try:
                result = await orchestrator.process_job(row)
                logger.info(f"Manual run of row {row}: {result.message}")
            except Exception as e:
                logger.error(f"Manual run of row {row} crashed: {e}")

        task = asyncio.create_task(_run())
        background.add(task)
        task.add_done_callback(background.discard)
        return {"success": True, "message": f"Row {row} queued for processing"}

    @app.get("/screenshots/{filename}")
    async def screenshot(filename: str):
        if not filename.endswith(".png") or ".." in filename:
            raise HTTPException(status_code=403, detail="Forbidden")
        path = orchestrator.screenshots.resolve(filename)
        if path is None:
            raise HTTPException(status_code=404, detail="Screenshot not found")
        return FileResponse(path, media_type="image/png", headers={"Cache-Control": "public, max-age=86400"})

    return app

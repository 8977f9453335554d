"""FastAPI command intake for a running world session."""

from __future__ import annotations

import contextlib
import logging
import threading
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from ..session import SessionError, WorldSession

logger = logging.getLogger(__name__)


class SpawnRequest(BaseModel):
    name: str
    x: Optional[int] = None
    y: Optional[int] = None


class CommandRequest(BaseModel):
    text: str


class TickLoop:
    """Drives ``session.tick()`` from a daemon thread at ``rate`` ticks per second."""

    def __init__(self, session: WorldSession, rate: float = 60.0) -> None:
        self.session = session
        self.interval = 1.0 / rate if rate > 0 else 0.0
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="terrabot-tick", daemon=True)
        self._thread.start()
        logger.info("Tick loop running every %.3fs", self.interval)

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            self.session.tick()
            self.session.cleanup()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None


def create_app(session: WorldSession, *, tick_rate: Optional[float] = None) -> FastAPI:
    """Build the HTTP surface; pass ``tick_rate`` to tick the world from a background thread.

    Handlers run on request threads, so they read only what each executor published at the end of
    its last tick and hand work over through the session's queues.
    """

    loop = TickLoop(session, tick_rate) if tick_rate else None

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if loop is not None:
            loop.start()
        try:
            yield
        finally:
            if loop is not None:
                loop.stop()

    app = FastAPI(title="Terrabot Command Intake", lifespan=lifespan)
    app.state.session = session

    @app.get("/agents")
    def list_agents() -> List[Dict[str, Any]]:
        return [executor.status() for executor in session.agents()]

    @app.post("/agents", status_code=201)
    def spawn_agent(request: SpawnRequest) -> Dict[str, Any]:
        position = (request.x, request.y) if request.x is not None and request.y is not None else None
        try:
            executor = session.spawn(request.name, position)
        except SessionError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return executor.status()

    @app.get("/agents/{name}")
    def get_agent(name: str) -> Dict[str, Any]:
        executor = session.get(name)
        if executor is None:
            raise HTTPException(status_code=404, detail=f"Unknown agent '{name}'")
        return executor.status()

    @app.delete("/agents/{name}")
    def remove_agent(name: str) -> Dict[str, Any]:
        if not session.remove(name):
            raise HTTPException(status_code=404, detail=f"Unknown agent '{name}'")
        return {"removed": name}

    @app.post("/agents/{name}/commands", status_code=202)
    def submit_command(name: str, request: CommandRequest) -> Dict[str, Any]:
        if not request.text.strip():
            raise HTTPException(status_code=400, detail="Command text must not be empty")
        try:
            session.submit_command(name, request.text)
        except SessionError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return {"agent": name, "accepted": request.text}

    @app.post("/agents/{name}/stop", status_code=202)
    def stop_agent(name: str) -> Dict[str, Any]:
        try:
            session.stop(name)
        except SessionError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return {"agent": name, "stopping": True}

    @app.get("/jobs")
    def list_jobs() -> List[Dict[str, Any]]:
        jobs = []
        for job in session.coordinator.active_jobs():
            progress = job.progress()
            jobs.append(
                {
                    "id": job.job_id,
                    "type": job.job_type,
                    "origin": list(job.origin) if job.origin else None,
                    "participants": job.participants(),
                    "claimed": progress.claimed,
                    "total": progress.total,
                    "percent": progress.percent,
                }
            )
        return jobs

    return app

"""FastAPI app with SSE streaming of research sessions."""

from __future__ import annotations

import json
from collections.abc import AsyncGenerator
from datetime import date
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from lexagent.config import load_settings
from lexagent.core.concurrency import CancellationToken
from lexagent.errors import ResearchCancelled
from lexagent.logging import configure_logging, get_logger
from lexagent.models.research import ResearchFinding, Turn
from lexagent.orchestrator.runner import (
    ResearchOrchestrator,
    build_orchestrator,
    run_research,
    run_research_stream_async,
)


class ResearchRequest(BaseModel):
    """Research request."""

    query: str = Field(min_length=1)
    jurisdiction: str = ""
    effective_date: date | None = None
    prior_turns: list[Turn] = Field(default_factory=list)


def create_app(orchestrator: ResearchOrchestrator | None = None) -> FastAPI:
    """Create FastAPI app.

    Args:
        orchestrator: Pre-wired orchestrator. Built from settings when omitted.
    """

    settings = orchestrator.settings if orchestrator is not None else load_settings()
    configure_logging(settings.log_level)
    logger = get_logger(__name__)

    orch = orchestrator or build_orchestrator(settings)

    app = FastAPI(title="LexAgent", version="0.1.0")

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/research")
    def research(req: ResearchRequest) -> ResearchFinding:
        logger.info("API research requested", extra={"query_len": len(req.query)})
        return run_research(
            req.query,
            req.jurisdiction,
            req.effective_date,
            req.prior_turns,
            orchestrator=orch,
        )

    @app.post("/research/stream")
    async def research_stream(req: ResearchRequest, request: Request) -> StreamingResponse:
        logger.info("API research stream requested", extra={"query_len": len(req.query)})
        token = CancellationToken()

        async def gen() -> AsyncGenerator[bytes, None]:
            try:
                async for ev in run_research_stream_async(
                    req.query,
                    req.jurisdiction,
                    req.effective_date,
                    req.prior_turns,
                    orchestrator=orch,
                    cancel_token=token,
                ):
                    if await request.is_disconnected():
                        token.cancel("client disconnected")
                        return
                    payload = json.dumps(ev.model_dump(mode="json"), ensure_ascii=False)
                    yield f"data: {payload}\n\n".encode("utf-8")
            except ResearchCancelled:
                logger.info("Research stream cancelled", extra={"reason": token.reason})

        return StreamingResponse(gen(), media_type="text/event-stream")

    @app.get("/tools")
    def tools() -> list[dict[str, Any]]:
        return orch.registry.list_tools()

    @app.get("/cache/stats")
    def cache_stats() -> dict[str, int]:
        return orch.cache.stats()

    @app.delete("/cache")
    def cache_clear() -> dict[str, str]:
        orch.cache.clear()
        logger.info("Tool cache cleared via API")
        return {"status": "cleared"}

    return app

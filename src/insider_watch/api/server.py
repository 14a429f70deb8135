"""
FastAPI server exposing analysis runs, statistics and stored trades.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..clients.base import MarketSource
from ..config import Config, get_config
from ..detection.pipeline import DetectionPipeline
from ..detection.stats import RecencyBasis
from ..storage.database import Database

logger = logging.getLogger(__name__)


class AnalyzeRequest(BaseModel):
    limit: int = Field(100, ge=1, le=500)
    save: bool = False


class StatsResponse(BaseModel):
    total_suspicious_trades: int
    high_suspicion_trades: int
    average_suspicion_score: str
    recent_24h: int
    unique_suspicious_traders: int


def create_app(
    config: Optional[Config] = None,
    source: Optional[MarketSource] = None,
    db_path: Optional[Path] = None,
) -> FastAPI:
    """Create the FastAPI application.

    ``source`` and ``db_path`` replace the Polymarket client and the
    configured database, mainly for tests.
    """
    config = config or get_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting API server...")
        db = Database(db_path or config.storage.database_path)
        await db.connect()
        pipeline = DetectionPipeline(source=source, database=db, config=config)
        await pipeline.connect()
        app.state.pipeline = pipeline
        app.state.db = db

        yield

        logger.info("Shutting down API server...")
        await pipeline.close()
        await db.close()

    app = FastAPI(
        title="Insider Watch",
        description="Suspicious trade detection for prediction markets",
        version="0.1.0",
        lifespan=lifespan,
    )

    # CORS for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.error(f"Error handling {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})

    @app.post("/api/analyze")
    async def analyze(request: Request, body: Optional[AnalyzeRequest] = None):
        """Fetch recent trades and return the suspicious ones."""
        body = body or AnalyzeRequest()
        report = await request.app.state.pipeline.analyze(limit=body.limit, save=body.save)
        return report.to_dict()

    @app.get("/api/analyze")
    async def analyze_default(request: Request):
        """Run an analysis with default settings."""
        report = await request.app.state.pipeline.analyze(limit=100)
        return report.to_dict()

    @app.get("/api/stats")
    async def get_stats(
        request: Request,
        source: str = Query("live", pattern="^(live|stored)$"),
    ):
        """Summary statistics from a fresh analysis or from stored trades."""
        pipeline: DetectionPipeline = request.app.state.pipeline
        if source == "stored":
            stats = await pipeline.stored_stats(recency=RecencyBasis.TRADE_TIME)
        else:
            stats = await pipeline.live_stats(limit=100)
        return {"success": True, "stats": StatsResponse(**stats.to_dict())}

    @app.get("/api/trades")
    async def get_trades(
        request: Request,
        limit: int = Query(50, ge=1, le=500),
        min_score: float = Query(0.0, ge=0, le=100, alias="minScore"),
        offset: int = Query(0, ge=0),
    ):
        """Page through stored suspicious trades."""
        records, total = await request.app.state.db.query_suspicious_trades(
            min_score=min_score, limit=limit, offset=offset,
        )
        return {
            "success": True,
            "trades": [r.to_dict() for r in records],
            "count": len(records),
            "total": total,
        }

    return app


def run_server(host: str = "0.0.0.0", port: int = 8000, reload: bool = False):
    """Run the API server."""
    import uvicorn

    uvicorn.run(
        "insider_watch.api.server:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )

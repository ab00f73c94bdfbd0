"""FastAPI application exposing yield snapshots."""

from datetime import datetime, timezone
from typing import Generator, Optional

import httpx
import structlog
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from yield_core.config import AppConfig, load_config
from yield_core.db.engine import get_session as _get_session, init_engine
from yield_core.models import HistoryFilter, LatestFilter, SortField
from yield_core.query import QueryService, TTLCache, invalidate_meta_cache
from yield_core.scheduler.runner import build_services
from yield_core.sources.registry import KNOWN_SOURCES

logger = structlog.get_logger()

app = FastAPI(
    title="Yield Snapshot API",
    description="Daily yield snapshots across DeFi protocols",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Shared across requests so the distinct listings survive between sessions.
_meta_cache = TTLCache(ttl_seconds=300.0)

_config: AppConfig | None = None


def get_config() -> AppConfig:
    global _config
    if _config is None:
        _config = load_config("config.yaml")
    return _config


def get_db() -> Generator[Session, None, None]:
    """Dependency to get DB session."""
    gen = _get_session()
    session = next(gen)
    try:
        yield session
    finally:
        try:
            next(gen)
        except StopIteration:
            pass


def get_query_service(session: Session = Depends(get_db)) -> QueryService:
    return QueryService(session, cache=_meta_cache)


@app.on_event("startup")
async def startup_event():
    """Initialize database engine on startup."""
    init_engine(get_config().database.url)
    logger.info("Database engine initialized")


@app.exception_handler(SQLAlchemyError)
async def store_unavailable(request: Request, exc: SQLAlchemyError):
    logger.error("store_error", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=503, content={"detail": "Snapshot store unavailable"})


def _validation_detail(exc: ValidationError) -> list[dict]:
    return [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


# ═══════════════════════════════════════════════════════════════
# Pools
# ═══════════════════════════════════════════════════════════════


@app.get("/api/pools")
def list_pools(
    source: Optional[str] = None,
    asset: Optional[str] = None,
    category: Optional[str] = None,
    network: Optional[str] = None,
    min_rate: Optional[float] = None,
    sort: str = SortField.TOTAL_RATE.value,
    limit: int = 50,
    service: QueryService = Depends(get_query_service),
):
    """Latest snapshot per pool, sorted descending by *sort*."""
    try:
        flt = LatestFilter(
            source=source,
            asset=asset,
            category=category,
            network=network,
            min_rate=min_rate,
            sort_field=sort,
            limit=limit,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=_validation_detail(e))

    pools = service.latest(flt)
    return {"pools": [p.model_dump(mode="json") for p in pools], "count": len(pools)}


@app.get("/api/pools/top")
def top_pools(
    limit: int = 10,
    sort: str = SortField.TOTAL_RATE.value,
    service: QueryService = Depends(get_query_service),
):
    """Highest-yielding pools across every source."""
    try:
        flt = LatestFilter(limit=limit, sort_field=sort)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=_validation_detail(e))

    pools = service.top(limit=flt.limit, sort_field=flt.sort_field)
    return {"pools": [p.model_dump(mode="json") for p in pools], "count": len(pools)}


@app.get("/api/pools/history")
def pool_history(
    source: Optional[str] = None,
    asset: Optional[str] = None,
    category: Optional[str] = None,
    network: Optional[str] = None,
    min_rate: Optional[float] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    service: QueryService = Depends(get_query_service),
):
    """Daily snapshots in ``[start, end]``, oldest first."""
    try:
        flt = HistoryFilter(
            source=source,
            asset=asset,
            category=category,
            network=network,
            min_rate=min_rate,
            from_time=start,
            to_time=end,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=_validation_detail(e))

    points = service.history(flt)
    return {"history": [p.model_dump(mode="json") for p in points], "count": len(points)}


@app.get("/api/pools/networks")
def list_networks(service: QueryService = Depends(get_query_service)):
    return {"networks": [n.model_dump() for n in service.distinct_networks()]}


@app.get("/api/pools/categories")
def list_categories(service: QueryService = Depends(get_query_service)):
    return {"categories": [c.model_dump() for c in service.distinct_categories()]}


@app.get("/api/pools/assets")
def list_assets(service: QueryService = Depends(get_query_service)):
    return {"assets": [a.model_dump() for a in service.distinct_assets()]}


# ═══════════════════════════════════════════════════════════════
# Manual crawl
# ═══════════════════════════════════════════════════════════════


@app.post("/api/crawl/{source}")
async def trigger_crawl(source: str, config: AppConfig = Depends(get_config)):
    """Run every configured adapter of *source* once and report the outcomes."""
    if source not in KNOWN_SOURCES:
        raise HTTPException(status_code=404, detail=f"Unknown source {source!r}")

    async with httpx.AsyncClient(timeout=config.http.timeout_s) as http:
        services = [s for s in build_services(config, http=http) if s.adapter.source == source]
        if not services:
            raise HTTPException(status_code=404, detail=f"Source {source!r} is not configured")

        outcomes = []
        try:
            for service in services:
                outcomes.append(await service.run())
        finally:
            for service in services:
                await service.adapter.close()

    invalidate_meta_cache(_meta_cache)
    logger.info("manual_crawl_complete", source=source, runs=len(outcomes))
    return {"outcomes": [o.model_dump() for o in outcomes]}

from __future__ import annotations

import sys
from contextlib import asynccontextmanager
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pydantic import BaseModel, Field

from config import Configuration
from models import POI, AuthorizationStatus, Coordinate, FetchOutcome, POIFilter, Viewport
from services.geoapify import GeoapifyClient
from services.map_session import MapSession
from services.nutrition import ChainNutritionIndex
from services.overpass import OverpassClient


def configure_logging(cfg: Configuration) -> None:
    logger.remove()
    logger.add(sys.stderr, level=cfg.log_level.upper())


def build_session(cfg: Configuration) -> MapSession:
    return MapSession(
        cfg,
        fetcher=OverpassClient(cfg),
        geocoder=GeoapifyClient(cfg),
        extended_lookup=ChainNutritionIndex(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    load_dotenv()
    cfg = Configuration.from_env()
    configure_logging(cfg)
    logger.info("cfg: {}", cfg.log_summary())
    if getattr(app.state, "session", None) is None:
        app.state.session = build_session(cfg)
    try:
        yield
    finally:
        await app.state.session.close()
        app.state.session = None


app = FastAPI(title="MealMap Region Cache", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class CoordinatePayload(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)

    def to_coordinate(self) -> Coordinate:
        return Coordinate(lat=self.lat, lon=self.lon)


class ViewportRequest(CoordinatePayload):
    lat_span: float = Field(0.01, gt=0, description="Latitude span of the visible map in degrees")
    lon_span: float = Field(0.01, gt=0, description="Longitude span of the visible map in degrees")


class PositionRequest(CoordinatePayload):
    authorization: AuthorizationStatus = AuthorizationStatus.AUTHORIZED_WHEN_IN_USE


class FilterPayload(BaseModel):
    amenity: Optional[str] = None
    chains: List[str] = []
    cuisines: List[str] = []
    max_distance_miles: Optional[float] = Field(None, gt=0)
    has_extended_data: Optional[bool] = None


class POIPayload(BaseModel):
    id: int
    name: str
    lat: float
    lon: float
    address: Optional[str] = None
    category: Optional[str] = None
    opening_hours: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    source_type: str = "node"
    amenity: Optional[str] = None
    has_extended_data: bool = False


class StateResponse(BaseModel):
    pois: List[POIPayload]
    is_loading: bool
    loading_progress: float
    area_name: str
    active_filter: FilterPayload
    search_results: List[POIPayload]
    outcome: Optional[FetchOutcome] = None


def _session(request: Request) -> MapSession:
    return request.app.state.session


def _to_payload(session: MapSession, p: POI) -> POIPayload:
    return POIPayload(
        id=p.id,
        name=p.name,
        lat=p.coordinate.lat,
        lon=p.coordinate.lon,
        address=p.address,
        category=p.category,
        opening_hours=p.opening_hours,
        phone=p.phone,
        website=p.website,
        source_type=p.source_type,
        amenity=p.amenity,
        has_extended_data=session.coordinator.store.has_extended_data(p.id),
    )


def _state(session: MapSession, outcome: Optional[FetchOutcome] = None) -> StateResponse:
    f = session.active_filter
    return StateResponse(
        pois=[_to_payload(session, p) for p in session.pois],
        is_loading=session.is_loading,
        loading_progress=session.loading_progress,
        area_name=session.area_name,
        active_filter=FilterPayload(
            amenity=f.amenity,
            chains=list(f.chains),
            cuisines=list(f.cuisines),
            max_distance_miles=f.max_distance_miles,
            has_extended_data=f.has_extended_data,
        ),
        search_results=[_to_payload(session, p) for p in session.search_results],
        outcome=outcome,
    )


@app.get("/healthz")
def healthz() -> dict:
    return {"status": "ok"}


@app.get("/state", response_model=StateResponse)
def state(request: Request) -> StateResponse:
    return _state(_session(request))


@app.post("/viewport", response_model=StateResponse)
async def viewport(req: ViewportRequest, request: Request) -> StateResponse:
    session = _session(request)
    outcome = await session.on_viewport_change(
        Viewport(center=req.to_coordinate(), lat_span=req.lat_span, lon_span=req.lon_span)
    )
    return _state(session, outcome)


@app.post("/position", response_model=StateResponse)
async def position(req: PositionRequest, request: Request) -> StateResponse:
    session = _session(request)
    accepted = session.position.update(req.to_coordinate(), req.authorization)
    if not accepted:
        raise HTTPException(status_code=403, detail=f"location not authorized: {req.authorization.value}")
    await session.settle()
    return _state(session)


@app.post("/refresh", response_model=StateResponse)
async def refresh(req: CoordinatePayload, request: Request) -> StateResponse:
    session = _session(request)
    outcome = await session.force_refresh(req.to_coordinate())
    if outcome is None:
        raise HTTPException(status_code=502, detail="remote POI source unavailable")
    return _state(session, outcome)


@app.get("/search", response_model=List[POIPayload])
def search(request: Request, q: str = Query(..., min_length=1)) -> List[POIPayload]:
    session = _session(request)
    return [_to_payload(session, p) for p in session.search(q)]


@app.delete("/search")
def clear_search(request: Request) -> dict:
    _session(request).clear_search()
    return {"ok": True}


@app.put("/filter", response_model=StateResponse)
def set_filter(payload: FilterPayload, request: Request) -> StateResponse:
    session = _session(request)
    session.set_filter(POIFilter(**payload.model_dump()))
    return _state(session)


@app.delete("/filter", response_model=StateResponse)
def clear_filters(request: Request) -> StateResponse:
    session = _session(request)
    session.clear_filters()
    return _state(session)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8010, reload=True)

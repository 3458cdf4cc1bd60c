"""
FastAPI application for the vendor performance map.
Serves the ingested snapshot and selection-aware area queries to the map frontend.
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from data_loader import (
    IngestionError,
    MapSnapshot,
    default_boundary_files,
    default_data_dir,
    get_data_store,
    load_input_data,
)
from metrics import (
    EFFICIENCY_TIERS,
    NEUTRAL_FILL_COLOR,
    TIER_DISPLAY_NAMES,
    TIER_INTENSITY,
    VENDOR_COLOR_PALETTE,
    vendor_colors,
)
from models import (
    AreasResponse,
    AreaView,
    ConfigResponse,
    HealthResponse,
    LegendSummary,
    RefreshResponse,
    StoresResponse,
    VendorTerritory,
)
from queries import area_view, area_views, legend_summary, parse_selection, vendor_territory


# ============================================================================
# Application Lifecycle
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load data on startup."""
    data_dir = default_data_dir()
    print(f"Looking for input data in: {data_dir}")

    if data_dir.exists():
        try:
            load_input_data(data_dir)
        except (FileNotFoundError, IngestionError) as exc:
            print(f"WARNING: could not load input data: {exc}")
            print("API will start but data endpoints will fail until data is loaded.")
    else:
        print(f"WARNING: input directory not found at {data_dir}")
        print("API will start but data endpoints will fail until data is loaded.")

    yield


# ============================================================================
# FastAPI Application
# ============================================================================

app = FastAPI(
    title="Vendor Performance Map API",
    description="Print distribution efficiency by ZIP code, with multi-vendor overlap",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000", "http://127.0.0.1:5173", "http://localhost:5174"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def require_snapshot() -> MapSnapshot:
    store = get_data_store()
    if not store.is_loaded:
        raise HTTPException(
            status_code=503,
            detail="Data not loaded. Please ensure the input CSV files are available."
        )
    return store.snapshot


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Simple health check endpoint."""
    return HealthResponse(status="ok")


# ============================================================================
# Configuration
# ============================================================================

@app.get("/config", response_model=ConfigResponse)
async def get_config():
    """
    Vendor catalog with colors, efficiency tiers, and data counts.
    """
    snapshot = require_snapshot()

    return ConfigResponse(
        vendors=list(snapshot.vendor_catalog),
        vendor_colors=vendor_colors(snapshot.vendor_catalog),
        palette=VENDOR_COLOR_PALETTE,
        efficiency_tiers=EFFICIENCY_TIERS,
        tier_display_names=TIER_DISPLAY_NAMES,
        tier_intensity=TIER_INTENSITY,
        neutral_color=NEUTRAL_FILL_COLOR,
        area_count=snapshot.area_count,
        overlap_area_count=snapshot.overlap_area_count,
        record_count=snapshot.record_count,
        store_count=len(snapshot.stores),
        boundary_feature_count=snapshot.boundary_feature_count,
    )


# ============================================================================
# Areas
# ============================================================================

@app.get("/areas", response_model=AreasResponse)
async def get_areas(
    vendors: Optional[list[str]] = Query(default=None),
    shading: bool = True,
):
    """
    Area views for every area visible under the vendor selection.
    Omit `vendors` (or pass `vendors=all`) for all vendors; `vendors=` selects none.
    `shading=false` fills areas with the plain vendor color.
    """
    snapshot = require_snapshot()
    selection = parse_selection(vendors)
    return AreasResponse(areas=area_views(snapshot, selection, shading))


@app.get("/areas/{area_code}", response_model=AreaView)
async def get_area(
    area_code: str,
    vendors: Optional[list[str]] = Query(default=None),
    shading: bool = True,
):
    """
    View of a single area. Unknown codes return an empty view so the map
    can fall back to its neutral style.
    """
    snapshot = require_snapshot()
    return area_view(snapshot, area_code, parse_selection(vendors), shading)


@app.get("/vendors/{vendor}/areas", response_model=VendorTerritory)
async def get_vendor_areas(vendor: str):
    """Areas to highlight when a vendor's territory is clicked."""
    snapshot = require_snapshot()
    try:
        return vendor_territory(snapshot, vendor)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown vendor: {vendor}")


# ============================================================================
# Stores, Legend, Boundaries
# ============================================================================

@app.get("/stores", response_model=StoresResponse)
async def get_stores():
    snapshot = require_snapshot()
    return StoresResponse(stores=list(snapshot.stores))


@app.get("/legend", response_model=LegendSummary)
async def get_legend(vendors: Optional[list[str]] = Query(default=None)):
    """Tier counts and per-vendor legend entries for the selection."""
    snapshot = require_snapshot()
    return legend_summary(snapshot, parse_selection(vendors))


@app.get("/boundaries")
async def get_boundaries() -> dict:
    """Merged ZIP boundary FeatureCollection."""
    snapshot = require_snapshot()
    if not snapshot.boundaries:
        raise HTTPException(status_code=404, detail="No boundary data loaded.")
    return dict(snapshot.boundaries)


# ============================================================================
# Refresh
# ============================================================================

@app.post("/refresh", response_model=RefreshResponse)
async def refresh_data():
    """
    Re-ingest all input files. The current snapshot stays in place if loading fails.
    """
    store = get_data_store()
    data_dir = store.data_dir or default_data_dir()
    try:
        store.load_data(data_dir, boundary_files=default_boundary_files())
    except FileNotFoundError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except IngestionError as exc:
        raise HTTPException(status_code=422, detail=f"Ingestion failed: {exc}") from exc

    snapshot = store.snapshot
    return RefreshResponse(
        area_count=snapshot.area_count,
        vendor_count=len(snapshot.vendor_catalog),
        store_count=len(snapshot.stores),
    )


# ============================================================================
# Entry Point
# ============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

"""
Pydantic models for ingested records and API response schemas.
"""
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Ingested Records
# ============================================================================

class VendorRecord(BaseModel):
    """One vendor's print distribution in one area."""
    model_config = ConfigDict(frozen=True)

    area_code: str
    vendor: str = "Unknown Vendor"
    # Area-level total, shared by every vendor in the same area
    visitors: int = 0
    print_pieces: int
    notes: str = ""
    efficiency: float = 0.0
    efficiency_tier: str = "low"


class StoreLocation(BaseModel):
    """A store marker."""
    model_config = ConfigDict(frozen=True)

    name: str = "Unknown Store"
    latitude: float
    longitude: float
    address: str = ""


# ============================================================================
# Area Views
# ============================================================================

class AreaView(BaseModel):
    """Selection-aware summary of a single area, as consumed by the map."""
    area_code: str
    vendors: list[VendorRecord] = Field(default_factory=list)
    dominant: Optional[VendorRecord] = None
    additional: list[VendorRecord] = Field(default_factory=list)
    combined_efficiency: float = 0.0
    efficiency_tier: str = "low"
    visual_intensity: float = 0.3
    is_overlap: bool = False
    multi_vendor: bool = False
    low_performer: bool = False
    color: Optional[str] = None
    # Polygon fill: shaded vendor color, or the neutral color when nothing is shown
    fill_color: str = "#f0f0f0"


class VendorTerritory(BaseModel):
    """Areas in which a vendor distributed print."""
    vendor: str
    color: str
    area_codes: list[str] = Field(default_factory=list)


# ============================================================================
# Legend
# ============================================================================

class TierCounts(BaseModel):
    """Number of records per efficiency tier."""
    low: int = 0
    medium: int = 0
    high: int = 0


class VendorLegendEntry(BaseModel):
    """Legend row for a single vendor."""
    vendor: str
    color: str
    area_count: int = 0
    average_efficiency: float = 0.0


class LegendSummary(BaseModel):
    """Everything the legend panel displays for a selection."""
    tier_counts: TierCounts = Field(default_factory=TierCounts)
    vendors: list[VendorLegendEntry] = Field(default_factory=list)
    store_count: int = 0


# ============================================================================
# API Responses
# ============================================================================

class ConfigResponse(BaseModel):
    """Response model for GET /config endpoint."""
    vendors: list[str]
    vendor_colors: dict[str, str] = Field(default_factory=dict)
    palette: list[str]
    efficiency_tiers: list[str]
    tier_display_names: dict[str, str] = Field(default_factory=dict)
    tier_intensity: dict[str, float] = Field(default_factory=dict)
    neutral_color: str
    area_count: int
    overlap_area_count: int
    record_count: int
    store_count: int
    boundary_feature_count: int = 0


class AreasResponse(BaseModel):
    """Response for GET /areas endpoint."""
    areas: list[AreaView]


class StoresResponse(BaseModel):
    """Response for GET /stores endpoint."""
    stores: list[StoreLocation]


class RefreshResponse(BaseModel):
    """Response for POST /refresh endpoint."""
    area_count: int
    vendor_count: int
    store_count: int


class HealthResponse(BaseModel):
    """Response for GET /health endpoint."""
    status: str = "ok"

"""
Selection-aware queries over a MapSnapshot.

Every function takes the vendor selection explicitly. A selection is either
ALL_VENDORS or a frozenset of vendor names; the empty set selects nothing.
Nothing here mutates the snapshot.
"""
from typing import AbstractSet, Iterable, Literal, Mapping, Sequence, Union

import numpy as np

from data_loader import MapSnapshot
from metrics import (
    NEUTRAL_FILL_COLOR,
    TIER_HIGH,
    TIER_LOW,
    TIER_MEDIUM,
    efficiency,
    efficiency_tier,
    shaded_color,
    vendor_color,
    vendor_colors,
    visual_intensity,
)
from models import (
    AreaView,
    LegendSummary,
    TierCounts,
    VendorLegendEntry,
    VendorRecord,
    VendorTerritory,
)


ALL_VENDORS = "all"

Selection = Union[Literal["all"], AbstractSet[str]]

AreaIndex = Mapping[str, Sequence[VendorRecord]]


def parse_selection(values: Iterable[str] | None) -> Selection:
    """
    Build a selection from query-string style values.

    None (parameter omitted) or any value equal to "all" selects all vendors.
    Blank values are ignored, so a single empty value is the empty selection.
    """
    if values is None:
        return ALL_VENDORS
    names = [str(v).strip() for v in values]
    if ALL_VENDORS in names:
        return ALL_VENDORS
    return frozenset(name for name in names if name)


# ============================================================================
# Per-area Queries
# ============================================================================

def relevant_vendors(area_index: AreaIndex, area_code: str, selection: Selection) -> list[VendorRecord]:
    """
    Records in an area that the selection shows, in index order.
    Unknown areas and the empty selection give an empty list.
    """
    records = area_index.get(area_code, ())
    if selection == ALL_VENDORS:
        return list(records)
    return [r for r in records if r.vendor in selection]


def combined_efficiency(area_index: AreaIndex, area_code: str, selection: Selection) -> float:
    """
    Weighted efficiency of the relevant records: summed visitors over summed
    print pieces, not the mean of per-record efficiencies.
    """
    records = relevant_vendors(area_index, area_code, selection)
    if not records:
        return 0.0
    total_visitors = sum(r.visitors for r in records)
    total_pieces = sum(r.print_pieces for r in records)
    return efficiency(total_visitors, total_pieces)


def dominant_vendor(vendors: Sequence[VendorRecord]) -> VendorRecord | None:
    """Record with the most print pieces; the first one wins a tie."""
    dominant = None
    for record in vendors:
        if dominant is None or record.print_pieces > dominant.print_pieces:
            dominant = record
    return dominant


def additional_vendors(vendors: Sequence[VendorRecord], dominant: VendorRecord | None) -> list[VendorRecord]:
    """Records belonging to any vendor other than the dominant one."""
    if dominant is None:
        return list(vendors)
    return [r for r in vendors if r.vendor != dominant.vendor]


def is_overlap(area_index: AreaIndex, area_code: str, selection: Selection) -> bool:
    """True when more than one record in the area is visible under the selection."""
    return len(relevant_vendors(area_index, area_code, selection)) > 1


def area_view(
    snapshot: MapSnapshot,
    area_code: str,
    selection: Selection,
    shading: bool = True,
) -> AreaView:
    """
    Everything the map needs to style and describe one area.

    fill_color is the dominant vendor's color, shaded by the combined
    efficiency tier when shading is on. Unknown area codes are not an error:
    the view is empty, has no vendor color, and fills with NEUTRAL_FILL_COLOR.
    """
    area_code = str(area_code).strip()
    records = relevant_vendors(snapshot.area_index, area_code, selection)
    dominant = dominant_vendor(records)
    value = combined_efficiency(snapshot.area_index, area_code, selection)
    tier = efficiency_tier(value)
    color = vendor_color(dominant.vendor, snapshot.vendor_catalog) if dominant else None

    return AreaView(
        area_code=area_code,
        vendors=records,
        dominant=dominant,
        additional=additional_vendors(records, dominant),
        combined_efficiency=value,
        efficiency_tier=tier,
        visual_intensity=visual_intensity(value),
        is_overlap=len(records) > 1,
        multi_vendor=len(snapshot.area_index.get(area_code, ())) > 1,
        low_performer=bool(records) and tier == TIER_LOW,
        color=color,
        fill_color=shaded_color(color, value, shading) if color else NEUTRAL_FILL_COLOR,
    )


def area_views(snapshot: MapSnapshot, selection: Selection, shading: bool = True) -> list[AreaView]:
    """Views for every indexed area that has something to show under the selection."""
    views = []
    for area_code in snapshot.area_index:
        view = area_view(snapshot, area_code, selection, shading)
        if view.vendors:
            views.append(view)
    return views


# ============================================================================
# Vendor Territory
# ============================================================================

def vendor_areas(area_index: AreaIndex, vendor: str) -> list[str]:
    """Area codes where the vendor has at least one record, in index order."""
    return [
        area_code
        for area_code, records in area_index.items()
        if any(r.vendor == vendor for r in records)
    ]


def vendor_territory(snapshot: MapSnapshot, vendor: str) -> VendorTerritory:
    """
    Raises:
        KeyError: if the vendor is not in the catalog
    """
    if vendor not in snapshot.vendor_catalog:
        raise KeyError(vendor)
    return VendorTerritory(
        vendor=vendor,
        color=vendor_color(vendor, snapshot.vendor_catalog),
        area_codes=vendor_areas(snapshot.area_index, vendor),
    )


# ============================================================================
# Legend
# ============================================================================

def legend_summary(snapshot: MapSnapshot, selection: Selection) -> LegendSummary:
    """
    Tier counts over the records visible under the selection. When all vendors
    are selected, also one entry per catalog vendor with its area count and
    mean per-record efficiency.
    """
    visible = [
        record
        for area_code in snapshot.area_index
        for record in relevant_vendors(snapshot.area_index, area_code, selection)
    ]
    tiers = [r.efficiency_tier for r in visible]
    tier_counts = TierCounts(
        low=tiers.count(TIER_LOW),
        medium=tiers.count(TIER_MEDIUM),
        high=tiers.count(TIER_HIGH),
    )

    entries = []
    if selection == ALL_VENDORS:
        colors = vendor_colors(snapshot.vendor_catalog)
        for vendor in snapshot.vendor_catalog:
            values = np.array([r.efficiency for r in visible if r.vendor == vendor], dtype=float)
            entries.append(VendorLegendEntry(
                vendor=vendor,
                color=colors[vendor],
                area_count=int(values.size),
                average_efficiency=round(float(values.mean()), 2) if values.size else 0.0,
            ))

    return LegendSummary(
        tier_counts=tier_counts,
        vendors=entries,
        store_count=len(snapshot.stores),
    )

"""
Efficiency metrics and vendor color assignment.
Implements the visitors-per-print-piece efficiency ratio, its tiers,
the tier-to-intensity mapping used for shading, and the vendor palette.
"""
from typing import Sequence


# ============================================================================
# Efficiency Tiers
# ============================================================================

TIER_LOW = "low"
TIER_MEDIUM = "medium"
TIER_HIGH = "high"

EFFICIENCY_TIERS = [TIER_LOW, TIER_MEDIUM, TIER_HIGH]

# Inclusive upper bounds (percent) for the low and medium tiers
LOW_TIER_MAX = 5.0
MEDIUM_TIER_MAX = 49.0

TIER_INTENSITY = {
    TIER_LOW: 0.3,
    TIER_MEDIUM: 0.6,
    TIER_HIGH: 1.0,
}

TIER_DISPLAY_NAMES = {
    TIER_LOW: "Low (≤5%)",
    TIER_MEDIUM: "Medium (5.1-49%)",
    TIER_HIGH: "High (≥50%)",
}


# ============================================================================
# Vendor Palette
# ============================================================================

VENDOR_COLOR_PALETTE = [
    "#e74c3c", "#3498db", "#f39c12", "#9b59b6", "#2ecc71",
    "#e67e22", "#1abc9c", "#34495e", "#f1c40f", "#e91e63",
    "#8bc34a", "#ff5722", "#607d8b", "#795548", "#ff9800",
    "#4caf50", "#673ab7", "#009688", "#ffeb3b", "#f44336",
    "#2196f3",
]

# Style for areas with nothing to show under the current selection
NEUTRAL_FILL_COLOR = "#f0f0f0"


# ============================================================================
# Efficiency
# ============================================================================

def efficiency(visitors: float, print_pieces: float) -> float:
    """
    Compute efficiency as visitors per hundred print pieces.

    Args:
        visitors: Visitor count for the area
        print_pieces: Number of pieces distributed

    Returns:
        visitors / print_pieces * 100, or 0.0 when nothing was printed
    """
    if print_pieces <= 0:
        return 0.0
    return visitors / print_pieces * 100.0


def efficiency_tier(value: float) -> str:
    """
    Classify an efficiency percentage.

    Bounds are inclusive on the lower tier: 5.0 is low and 49.0 is medium.
    Values strictly between 49 and 50 fall into high.
    """
    if value <= LOW_TIER_MAX:
        return TIER_LOW
    if value <= MEDIUM_TIER_MAX:
        return TIER_MEDIUM
    return TIER_HIGH


def visual_intensity(value: float) -> float:
    """Map an efficiency percentage to the fill opacity of its tier."""
    return TIER_INTENSITY[efficiency_tier(value)]


# ============================================================================
# Colors
# ============================================================================

def vendor_color(vendor: str, catalog: Sequence[str]) -> str:
    """
    Assign a palette color from the vendor's position in the sorted catalog.
    Palette entries are reused cyclically once vendors outnumber them.

    Raises:
        ValueError: if the vendor is not in the catalog
    """
    index = list(catalog).index(vendor)
    return VENDOR_COLOR_PALETTE[index % len(VENDOR_COLOR_PALETTE)]


def vendor_colors(catalog: Sequence[str]) -> dict[str, str]:
    """Color for every vendor in the catalog."""
    return {
        vendor: VENDOR_COLOR_PALETTE[i % len(VENDOR_COLOR_PALETTE)]
        for i, vendor in enumerate(catalog)
    }


def shaded_color(hex_color: str, value: float, shading: bool = True) -> str:
    """
    Apply efficiency shading to a "#rrggbb" color.

    With shading enabled the result is "rgba(r, g, b, a)" where a is the
    tier intensity; otherwise the hex color is returned unchanged.
    """
    if not shading:
        return hex_color
    r = int(hex_color[1:3], 16)
    g = int(hex_color[3:5], 16)
    b = int(hex_color[5:7], 16)
    return f"rgba({r}, {g}, {b}, {visual_intensity(value)})"

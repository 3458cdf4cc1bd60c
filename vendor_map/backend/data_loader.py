"""
Data loading and preprocessing for the vendor performance map.
Handles CSV/GeoJSON loading, visitor aggregation, the area-vendor index,
and store normalization. Everything is built in one pass into an
immutable MapSnapshot.
"""
import json
import os
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping

import pandas as pd

from fields import (
    BOUNDARY_ZIP_KEYS,
    PRINT_NOTES_KEYS,
    PRINT_QUANTITY_KEYS,
    PRINT_VENDOR_KEYS,
    PRINT_ZIP_KEYS,
    STORE_ADDRESS_KEYS,
    STORE_LAT_KEYS,
    STORE_LNG_KEYS,
    STORE_NAME_KEYS,
    VISITOR_COUNT_KEYS,
    VISITOR_ZIP_KEYS,
    normalize_area_code,
    parse_coordinate,
    parse_count,
    resolve_field,
    resolve_text,
)
from metrics import efficiency, efficiency_tier
from models import StoreLocation, VendorRecord


# ============================================================================
# Input Files
# ============================================================================

PRINT_DISTRIBUTION_FILE = "print_distribution.csv"
VISITOR_DATA_FILE = "visitor_data.csv"
STORE_LOCATIONS_FILE = "store_locations.csv"
BOUNDARY_FILES = ["NY_ZIP_compressed.geojson", "VT_ZIP_compressed.geojson"]

CSV_DELIMITERS = [",", "\t", "|", ";"]
CSV_NA_VALUES = ["", "NA", "N/A", "null", "NULL"]

UNKNOWN_VENDOR = "Unknown Vendor"
UNKNOWN_STORE = "Unknown Store"


class IngestionError(ValueError):
    """A whole dataset could not be used; no snapshot is built."""


# ============================================================================
# Dataset Shape
# ============================================================================

def _as_records(dataset: Any, name: str) -> list[Mapping[str, Any]]:
    """
    Materialize a dataset as a list of row mappings.

    Accepts a DataFrame or any iterable of mappings. Anything else (None,
    a bare string, a single mapping, rows that are not mappings) fails the
    whole dataset.
    """
    if isinstance(dataset, pd.DataFrame):
        return dataset.to_dict("records")
    if dataset is None or isinstance(dataset, (str, bytes, Mapping)):
        raise IngestionError(f"{name}: expected a DataFrame or a sequence of rows, got {type(dataset).__name__}")
    try:
        rows = list(dataset)
    except TypeError as exc:
        raise IngestionError(f"{name}: dataset is not iterable") from exc

    for i, row in enumerate(rows):
        if not isinstance(row, Mapping):
            raise IngestionError(f"{name}: row {i} is {type(row).__name__}, expected a mapping")
    return rows


def _require_columns(rows: list[Mapping[str, Any]], name: str, required: list[list[str]]) -> None:
    """
    Fail the dataset when a required field has none of its candidate
    columns in any row. An empty dataset passes.
    """
    if not rows:
        return
    present = set()
    for row in rows:
        present.update(row.keys())
    for candidates in required:
        if present.isdisjoint(candidates):
            raise IngestionError(f"{name}: no column among {candidates}")


# ============================================================================
# Visitor Aggregation
# ============================================================================

def aggregate_visitors(visitor_rows: Iterable[Mapping[str, Any]]) -> dict[str, int]:
    """
    Sum visitor counts per area code.

    Rows without an area code, or whose visitor value is missing, not a
    number, or not positive, are skipped and contribute nothing.

    Args:
        visitor_rows: Raw visitor rows (DataFrame or iterable of mappings)

    Returns:
        Dict mapping trimmed area code -> total visitors
    """
    rows = _as_records(visitor_rows, "visitor data")
    _require_columns(rows, "visitor data", [VISITOR_ZIP_KEYS, VISITOR_COUNT_KEYS])
    visitors_by_zip: dict[str, int] = defaultdict(int)
    skipped = 0

    for row in rows:
        zip_code = normalize_area_code(resolve_field(row, VISITOR_ZIP_KEYS))
        count = parse_count(resolve_field(row, VISITOR_COUNT_KEYS))
        if not zip_code or count is None or count <= 0:
            skipped += 1
            continue
        visitors_by_zip[zip_code] += count

    if skipped:
        print(f"[data_loader] Skipped {skipped:,} visitor rows with missing ZIP or invalid visitor count")
    return dict(visitors_by_zip)


# ============================================================================
# Area-Vendor Index
# ============================================================================

def build_area_index(
    print_rows: Iterable[Mapping[str, Any]],
    visitors_by_zip: Mapping[str, int],
) -> tuple[dict[str, list[VendorRecord]], list[str]]:
    """
    Build the area -> vendor records index and the sorted vendor catalog.

    Records keep input row order within each area. Rows with an empty area
    code or a quantity that is not positive are dropped, and their vendors
    do not enter the catalog.

    Args:
        print_rows: Raw print distribution rows
        visitors_by_zip: Output of aggregate_visitors

    Returns:
        (area_index, vendor_catalog)
    """
    rows = _as_records(print_rows, "print distribution")
    _require_columns(rows, "print distribution", [PRINT_ZIP_KEYS, PRINT_QUANTITY_KEYS])
    area_index: dict[str, list[VendorRecord]] = {}
    skipped = 0

    for row in rows:
        zip_code = normalize_area_code(resolve_field(row, PRINT_ZIP_KEYS))
        quantity = parse_count(resolve_field(row, PRINT_QUANTITY_KEYS))
        if not zip_code or quantity is None or quantity <= 0:
            skipped += 1
            continue

        visitors = visitors_by_zip.get(zip_code, 0)
        value = efficiency(visitors, quantity)
        record = VendorRecord(
            area_code=zip_code,
            vendor=resolve_text(row, PRINT_VENDOR_KEYS, default=UNKNOWN_VENDOR),
            visitors=visitors,
            print_pieces=quantity,
            notes=resolve_text(row, PRINT_NOTES_KEYS),
            efficiency=value,
            efficiency_tier=efficiency_tier(value),
        )
        area_index.setdefault(zip_code, []).append(record)

    if skipped:
        print(f"[data_loader] Skipped {skipped:,} print rows with missing ZIP or non-positive quantity")

    vendor_catalog = sorted({r.vendor for records in area_index.values() for r in records})
    return area_index, vendor_catalog


# ============================================================================
# Store Locations
# ============================================================================

def normalize_stores(store_rows: Iterable[Mapping[str, Any]]) -> list[StoreLocation]:
    """
    Normalize store rows, dropping any whose coordinates are not finite numbers.
    Input order is kept; duplicates are not merged.
    """
    rows = _as_records(store_rows, "store locations")
    _require_columns(rows, "store locations", [STORE_LAT_KEYS, STORE_LNG_KEYS])
    stores = []
    for row in rows:
        lat = parse_coordinate(resolve_field(row, STORE_LAT_KEYS))
        lng = parse_coordinate(resolve_field(row, STORE_LNG_KEYS))
        if lat is None or lng is None:
            continue
        stores.append(StoreLocation(
            name=resolve_text(row, STORE_NAME_KEYS, default=UNKNOWN_STORE),
            latitude=lat,
            longitude=lng,
            address=resolve_text(row, STORE_ADDRESS_KEYS),
        ))

    dropped = len(rows) - len(stores)
    if dropped:
        print(f"[data_loader] Dropped {dropped:,} stores with invalid coordinates")
    return stores


# ============================================================================
# Boundaries
# ============================================================================

def feature_area_code(feature: Mapping[str, Any]) -> str:
    """Return the postal code of a GeoJSON feature, or "" if it has none."""
    properties = feature.get("properties") or {}
    return normalize_area_code(resolve_field(properties, BOUNDARY_ZIP_KEYS))


def load_boundaries(paths: Iterable[str | Path]) -> dict:
    """
    Load GeoJSON FeatureCollections and merge them into one collection.

    Raises:
        FileNotFoundError: if any file is missing
        IngestionError: if a file is not a FeatureCollection
    """
    features = []
    for path in paths:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Boundary file not found: {path}")
        with open(path, encoding="utf-8") as fh:
            collection = json.load(fh)
        if not isinstance(collection, dict) or not isinstance(collection.get("features"), list):
            raise IngestionError(f"{path.name}: not a GeoJSON FeatureCollection")
        features.extend(collection["features"])
    return {"type": "FeatureCollection", "features": features}


# ============================================================================
# Snapshot
# ============================================================================

@dataclass(frozen=True)
class MapSnapshot:
    """
    Immutable result of one ingestion pass.
    A refresh builds a new snapshot; this one is never updated in place.
    """
    area_index: Mapping[str, tuple[VendorRecord, ...]]
    vendor_catalog: tuple[str, ...]
    stores: tuple[StoreLocation, ...]
    boundaries: Mapping[str, Any] | None = field(default=None)

    @property
    def area_count(self) -> int:
        return len(self.area_index)

    @property
    def overlap_area_count(self) -> int:
        return sum(1 for records in self.area_index.values() if len(records) > 1)

    @property
    def record_count(self) -> int:
        return sum(len(records) for records in self.area_index.values())

    @property
    def boundary_feature_count(self) -> int:
        if not self.boundaries:
            return 0
        return len(self.boundaries.get("features", []))


def build_snapshot(
    print_rows: Any,
    visitor_rows: Any,
    store_rows: Any,
    boundaries: Mapping[str, Any] | None = None,
) -> MapSnapshot:
    """
    Run the whole ingestion pass: aggregate visitors, index vendors by area,
    build the vendor catalog and normalize stores.

    Raises:
        IngestionError: if any dataset is not a DataFrame or a sequence of row
            mappings. Nothing is returned in that case.
    """
    visitors_by_zip = aggregate_visitors(visitor_rows)
    area_index, vendor_catalog = build_area_index(print_rows, visitors_by_zip)
    stores = normalize_stores(store_rows)

    snapshot = MapSnapshot(
        area_index=MappingProxyType({zip_code: tuple(records) for zip_code, records in area_index.items()}),
        vendor_catalog=tuple(vendor_catalog),
        stores=tuple(stores),
        boundaries=boundaries,
    )
    print(f"[data_loader] Visitor ZIPs: {len(visitors_by_zip):,}")
    print(f"[data_loader] Areas: {snapshot.area_count:,} ({snapshot.overlap_area_count:,} with overlapping vendors)")
    print(f"[data_loader] Vendor records: {snapshot.record_count:,}  Vendors: {len(vendor_catalog)}")
    print(f"[data_loader] Stores: {len(stores):,}")
    return snapshot


# ============================================================================
# CSV Loading
# ============================================================================

def _guess_delimiter(header_line: str) -> str:
    """Pick the candidate delimiter that splits the header into most columns."""
    counts = {d: header_line.count(d) for d in CSV_DELIMITERS}
    best = max(CSV_DELIMITERS, key=lambda d: counts[d])
    return best if counts[best] > 0 else ","


def load_csv(csv_path: str | Path) -> pd.DataFrame:
    """
    Read a CSV with every column as text, so ZIP codes keep leading zeros.
    The delimiter is guessed from the header line.
    """
    csv_path = Path(csv_path)
    if not csv_path.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_path}")

    with open(csv_path, encoding="utf-8-sig") as fh:
        header_line = fh.readline()

    try:
        df = pd.read_csv(
            csv_path,
            sep=_guess_delimiter(header_line),
            dtype=str,
            skip_blank_lines=True,
            na_values=CSV_NA_VALUES,
            encoding="utf-8-sig",
        )
    except (pd.errors.EmptyDataError, pd.errors.ParserError) as exc:
        raise IngestionError(f"{csv_path.name}: {exc}") from exc
    # Strip whitespace from column names
    df.columns = df.columns.str.strip()
    return df


# ============================================================================
# Data Store
# ============================================================================

class DataStore:
    """
    Singleton-like holder for the current MapSnapshot.
    Loading swaps in a complete new snapshot; a failed load leaves the
    previous one in place.
    """

    def __init__(self):
        self._snapshot: MapSnapshot | None = None
        self.data_dir: Path | None = None

    def load_data(
        self,
        data_dir: str | Path,
        boundary_files: list[str] | None = None,
    ) -> MapSnapshot:
        """
        Load the three CSV datasets (and any boundary files present) from a directory.

        Args:
            data_dir: Directory holding the input files.
            boundary_files: GeoJSON file names to merge. Defaults to BOUNDARY_FILES.
                Missing boundary files are reported and skipped.
        """
        data_dir = Path(data_dir)
        if boundary_files is None:
            boundary_files = BOUNDARY_FILES

        print(f"Loading data from {data_dir}...")
        print_df = load_csv(data_dir / PRINT_DISTRIBUTION_FILE)
        visitor_df = load_csv(data_dir / VISITOR_DATA_FILE)
        store_df = load_csv(data_dir / STORE_LOCATIONS_FILE)
        print(f"Raw rows: print={len(print_df):,} visitors={len(visitor_df):,} stores={len(store_df):,}")

        boundary_paths = []
        for name in boundary_files:
            path = data_dir / name
            if path.exists():
                boundary_paths.append(path)
            else:
                print(f"[data_loader] Boundary file not found, skipping: {path}")
        boundaries = load_boundaries(boundary_paths) if boundary_paths else None

        snapshot = build_snapshot(print_df, visitor_df, store_df, boundaries=boundaries)
        self.set_snapshot(snapshot)
        self.data_dir = data_dir
        return snapshot

    def set_snapshot(self, snapshot: MapSnapshot) -> None:
        self._snapshot = snapshot

    @property
    def snapshot(self) -> MapSnapshot | None:
        return self._snapshot

    @property
    def is_loaded(self) -> bool:
        return self._snapshot is not None


# Global data store instance
data_store = DataStore()


def get_data_store() -> DataStore:
    """Get the global data store instance."""
    return data_store


def default_data_dir() -> Path:
    """
    Input directory from VENDOR_MAP_DATA_DIR, or <project root>/input.
    """
    env_dir = os.environ.get("VENDOR_MAP_DATA_DIR")
    if env_dir:
        return Path(env_dir)
    # Project root is two levels up from backend
    backend_dir = Path(__file__).parent
    return backend_dir.parent.parent / "input"


def default_boundary_files() -> list[str]:
    """Boundary file names from VENDOR_MAP_BOUNDARY_FILES, or BOUNDARY_FILES."""
    raw = os.environ.get("VENDOR_MAP_BOUNDARY_FILES")
    if not raw:
        return list(BOUNDARY_FILES)
    return [name.strip() for name in raw.split(",") if name.strip()]


def load_input_data(data_dir: str | Path | None = None) -> DataStore:
    """
    Load data from the input directory, using the configured default if not specified.
    Returns the data store instance.
    """
    if data_dir is None:
        data_dir = default_data_dir()
    data_store.load_data(data_dir, boundary_files=default_boundary_files())
    return data_store

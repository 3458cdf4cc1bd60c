import json

import pandas as pd
import pytest
from data_loader import (
    DataStore,
    IngestionError,
    aggregate_visitors,
    build_area_index,
    build_snapshot,
    feature_area_code,
    load_boundaries,
    load_csv,
    normalize_stores,
)


# ============================================================================
# Visitor Aggregation
# ============================================================================

def test_aggregate_visitors_sums_rows_per_zip():
    rows = [
        {"zipcode": "12345", "visitors": 100},
        {"Zipcode": "12345", "Visitors": "1.2K"},
        {"ZIP": " 12345 ", "visitors": ">50"},
        {"zipcode": "54321", "visitors": "1,000"},
    ]
    assert aggregate_visitors(rows) == {"12345": 1350, "54321": 1000}


def test_aggregate_visitors_independent_of_row_order():
    rows = [
        {"zipcode": "1", "visitors": 3},
        {"zipcode": "1", "visitors": 5},
        {"zipcode": "1", "visitors": 7},
    ]
    assert aggregate_visitors(rows) == aggregate_visitors(list(reversed(rows))) == {"1": 15}


def test_aggregate_visitors_skips_invalid_rows():
    rows = [
        {"zipcode": "1", "visitors": "N/A"},
        {"zipcode": "", "visitors": 10},
        {"zipcode": "2", "visitors": None},
        {"zipcode": "3", "visitors": "lots"},
        {"zipcode": "4", "visitors": 0},
        {"zipcode": "5", "visitors": 9},
    ]
    assert aggregate_visitors(rows) == {"5": 9}


# ============================================================================
# Area-Vendor Index
# ============================================================================

def test_build_area_index_end_to_end():
    print_rows = [
        {"zip": "12345", "vendor": "Acme", "quantity": "1,000"},
        {"zip": "12345", "vendor": "Beta", "quantity": 200},
    ]
    visitors = aggregate_visitors([{"zipcode": "12345", "visitors": "1.2K"}])
    index, catalog = build_area_index(print_rows, visitors)

    acme, beta = index["12345"]
    assert (acme.vendor, acme.visitors, acme.print_pieces) == ("Acme", 1200, 1000)
    assert acme.efficiency == pytest.approx(120.0)
    assert acme.efficiency_tier == "high"
    assert (beta.vendor, beta.visitors, beta.print_pieces) == ("Beta", 1200, 200)
    assert beta.efficiency == pytest.approx(600.0)
    assert beta.efficiency_tier == "high"
    assert catalog == ["Acme", "Beta"]


def test_build_area_index_drops_invalid_rows():
    print_rows = [
        {"zip": "12345", "vendor": "Acme", "quantity": 10},
        {"zip": "12345", "vendor": "Zero Co", "quantity": 0},
        {"zip": "", "vendor": "Ghost", "quantity": 500},
        {"zip": "54321", "vendor": "Junk", "quantity": "N/A"},
    ]
    index, catalog = build_area_index(print_rows, {})
    assert list(index) == ["12345"]
    assert [r.vendor for r in index["12345"]] == ["Acme"]
    assert catalog == ["Acme"]


def test_build_area_index_defaults_and_alternate_keys():
    print_rows = [
        {"ZIP Code": "05401", "Quantity": "2,500", "notes": "Spring mailer"},
        {"zip": 12345, "vendor": "Acme", "quantity": 10.0},
    ]
    index, catalog = build_area_index(print_rows, {"05401": 50})

    record = index["05401"][0]
    assert record.vendor == "Unknown Vendor"
    assert record.print_pieces == 2500
    assert record.visitors == 50
    assert record.notes == "Spring mailer"
    assert record.efficiency == pytest.approx(2.0)
    assert record.efficiency_tier == "low"
    # Numeric ZIPs are keyed as strings
    assert index["12345"][0].visitors == 0
    assert catalog == ["Acme", "Unknown Vendor"]


def test_build_area_index_keeps_input_order_within_area():
    print_rows = [
        {"zip": "1", "vendor": "Zulu", "quantity": 1},
        {"zip": "1", "vendor": "Alpha", "quantity": 1},
        {"zip": "1", "vendor": "Mike", "quantity": 1},
    ]
    index, catalog = build_area_index(print_rows, {})
    assert [r.vendor for r in index["1"]] == ["Zulu", "Alpha", "Mike"]
    assert catalog == ["Alpha", "Mike", "Zulu"]


# ============================================================================
# Stores
# ============================================================================

def test_normalize_stores(store_rows):
    stores = normalize_stores(store_rows)
    assert [s.name for s in stores] == ["Main St", "Depot", "Unknown Store"]
    assert stores[0].latitude == pytest.approx(43.05)
    assert stores[0].longitude == pytest.approx(-75.17)
    assert stores[0].address == "1 Main St"
    assert stores[1].address == ""
    assert stores[2].address == "Route 5"


def test_normalize_stores_keeps_duplicates():
    rows = [{"name": "A", "lat": 1, "lng": 2}, {"name": "A", "lat": 1, "lng": 2}]
    assert len(normalize_stores(rows)) == 2


# ============================================================================
# Snapshot
# ============================================================================

def test_build_snapshot(snapshot):
    assert snapshot.vendor_catalog == ("Acme", "Beta", "Cobalt")
    assert list(snapshot.area_index) == ["12345", "05401", "13501"]
    assert snapshot.area_count == 3
    assert snapshot.overlap_area_count == 2
    assert snapshot.record_count == 6
    assert len(snapshot.stores) == 3
    assert snapshot.boundary_feature_count == 0


def test_snapshot_is_immutable(snapshot):
    with pytest.raises(TypeError):
        snapshot.area_index["99999"] = ()
    assert isinstance(snapshot.area_index["12345"], tuple)


def test_build_snapshot_accepts_dataframes(print_rows, visitor_rows, store_rows):
    snapshot = build_snapshot(
        pd.DataFrame(print_rows),
        pd.DataFrame(visitor_rows),
        pd.DataFrame(store_rows),
    )
    assert snapshot.vendor_catalog == ("Acme", "Beta", "Cobalt")
    assert snapshot.area_index["12345"][0].visitors == 1200
    assert len(snapshot.stores) == 3


@pytest.mark.parametrize("bad", [None, "zip,vendor", {"zip": "1"}, 42, ["not a row"]])
def test_build_snapshot_rejects_malformed_dataset(print_rows, visitor_rows, bad):
    with pytest.raises(IngestionError):
        build_snapshot(print_rows, visitor_rows, bad)
    with pytest.raises(IngestionError):
        build_snapshot(bad, visitor_rows, [])


def test_build_area_index_rejects_unrecognized_columns():
    rows = [{"postcode": "12345", "supplier": "Acme", "count": 10}]
    with pytest.raises(IngestionError, match="print distribution"):
        build_area_index(rows, {})


def test_build_area_index_requires_quantity_column():
    with pytest.raises(IngestionError):
        build_area_index([{"zip": "12345", "vendor": "Acme"}], {})


def test_aggregate_visitors_rejects_unrecognized_columns():
    with pytest.raises(IngestionError, match="visitor data"):
        aggregate_visitors([{"zipcode": "12345", "footfall": 10}])


def test_normalize_stores_requires_coordinate_columns():
    with pytest.raises(IngestionError, match="store locations"):
        normalize_stores([{"name": "Shop", "lat": 44.4, "lon": -73.2}])


def test_empty_datasets_are_accepted():
    snapshot = build_snapshot([], [], [])
    assert snapshot.area_count == 0
    assert snapshot.vendor_catalog == ()


def test_build_snapshot_rejects_dataframe_with_wrong_columns(visitor_rows, store_rows):
    frame = pd.DataFrame({"postcode": ["12345"], "supplier": ["Acme"], "count": ["10"]})
    with pytest.raises(IngestionError):
        build_snapshot(frame, visitor_rows, store_rows)


# ============================================================================
# Boundaries
# ============================================================================

def test_feature_area_code_tries_both_keys():
    assert feature_area_code({"properties": {"ZCTA5CE20": "12345"}}) == "12345"
    assert feature_area_code({"properties": {"ZCTA5CE10": "05401"}}) == "05401"
    assert feature_area_code({"properties": {"NAME": "x"}}) == ""
    assert feature_area_code({}) == ""


def _write_collection(path, codes):
    features = [
        {"type": "Feature", "properties": {"ZCTA5CE10": code}, "geometry": None}
        for code in codes
    ]
    path.write_text(json.dumps({"type": "FeatureCollection", "features": features}))


def test_load_boundaries_merges_collections(tmp_path):
    _write_collection(tmp_path / "ny.geojson", ["12345", "13501"])
    _write_collection(tmp_path / "vt.geojson", ["05401"])
    merged = load_boundaries([tmp_path / "ny.geojson", tmp_path / "vt.geojson"])
    assert merged["type"] == "FeatureCollection"
    assert [feature_area_code(f) for f in merged["features"]] == ["12345", "13501", "05401"]


def test_load_boundaries_rejects_non_collection(tmp_path):
    (tmp_path / "bad.geojson").write_text(json.dumps({"type": "Feature"}))
    with pytest.raises(IngestionError):
        load_boundaries([tmp_path / "bad.geojson"])


# ============================================================================
# CSV Loading and Data Store
# ============================================================================

def _write_inputs(data_dir):
    (data_dir / "print_distribution.csv").write_text(
        'zip,vendor,quantity,notes\n'
        '05401,Acme,"1,000",\n'
        '05401,Beta,200,Reprint\n'
        ',Ghost,300,\n'
    )
    (data_dir / "visitor_data.csv").write_text(
        "zipcode;visitors\n"
        "05401;1.2K\n"
        "05401;N/A\n"
    )
    (data_dir / "store_locations.csv").write_text(
        "name\tlat\tlng\taddress\n"
        "Burlington\t44.47\t-73.21\t1 Church St\n"
        "Nowhere\t\t\t\n"
    )


def test_load_csv_keeps_leading_zeros_and_guesses_delimiter(tmp_path):
    _write_inputs(tmp_path)
    visitors = load_csv(tmp_path / "visitor_data.csv")
    assert list(visitors.columns) == ["zipcode", "visitors"]
    assert visitors["zipcode"].tolist() == ["05401", "05401"]
    assert pd.isna(visitors["visitors"].iloc[1])


def test_load_csv_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_csv(tmp_path / "missing.csv")


def test_load_csv_empty_file(tmp_path):
    (tmp_path / "empty.csv").write_text("")
    with pytest.raises(IngestionError, match="empty.csv"):
        load_csv(tmp_path / "empty.csv")


def test_load_csv_unparseable_file(tmp_path):
    (tmp_path / "broken.csv").write_text("zip,vendor,quantity\n12345,Acme,10,extra,more\n")
    with pytest.raises(IngestionError, match="broken.csv"):
        load_csv(tmp_path / "broken.csv")


def test_data_store_load_data(tmp_path):
    _write_inputs(tmp_path)
    _write_collection(tmp_path / "VT_ZIP_compressed.geojson", ["05401"])

    store = DataStore()
    assert not store.is_loaded
    snapshot = store.load_data(tmp_path)

    assert store.is_loaded
    assert store.snapshot is snapshot
    assert snapshot.vendor_catalog == ("Acme", "Beta")
    acme, beta = snapshot.area_index["05401"]
    assert acme.print_pieces == 1000
    assert acme.visitors == 1200
    assert beta.notes == "Reprint"
    assert acme.notes == ""
    assert [s.name for s in snapshot.stores] == ["Burlington"]
    assert snapshot.boundary_feature_count == 1


def test_data_store_failed_reload_keeps_previous_snapshot(tmp_path):
    _write_inputs(tmp_path)
    store = DataStore()
    first = store.load_data(tmp_path, boundary_files=[])

    (tmp_path / "visitor_data.csv").unlink()
    with pytest.raises(FileNotFoundError):
        store.load_data(tmp_path, boundary_files=[])
    assert store.snapshot is first


def test_data_store_reload_with_wrong_columns_keeps_previous_snapshot(tmp_path):
    _write_inputs(tmp_path)
    store = DataStore()
    first = store.load_data(tmp_path, boundary_files=[])

    (tmp_path / "print_distribution.csv").write_text("postcode,supplier,count\n05401,Acme,10\n")
    with pytest.raises(IngestionError):
        store.load_data(tmp_path, boundary_files=[])
    assert store.snapshot is first
    assert store.snapshot.vendor_catalog == ("Acme", "Beta")

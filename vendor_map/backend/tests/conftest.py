import pytest

from data_loader import build_snapshot


@pytest.fixture
def print_rows():
    return [
        {"zip": "12345", "vendor": "Acme", "quantity": "1,000"},
        {"zip": "12345", "vendor": "Beta", "quantity": 200},
        {"zip": "05401", "vendor": "Acme", "quantity": 5000},
        {"zip": "05401", "vendor": "Beta", "quantity": "5,000"},
        {"zip": "05401", "vendor": "Cobalt", "quantity": 100},
        {"ZIP Code": "13501", "vendor": "Cobalt", "Quantity": "400"},
    ]


@pytest.fixture
def visitor_rows():
    return [
        {"zipcode": "12345", "visitors": "1.2K"},
        {"Zipcode": "05401", "Visitors": ">100"},
        {"ZIP": "13501", "visitors": "N/A"},
    ]


@pytest.fixture
def store_rows():
    return [
        {"name": "Main St", "lat": "43.05", "lng": "-75.17", "address": "1 Main St"},
        {"Name": "Depot", "latitude": 44.47, "longitude": -73.21},
        {"name": "Broken", "lat": "n/a", "lng": "-75.0"},
        {"lat": 42.1, "Longitude": "-76.0", "Address": "Route 5"},
    ]


@pytest.fixture
def snapshot(print_rows, visitor_rows, store_rows):
    return build_snapshot(print_rows, visitor_rows, store_rows)

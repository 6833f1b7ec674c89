from decimal import Decimal
from types import SimpleNamespace

from monitor.jsonable import firestore_safe


def test_scalars_pass_through():
    assert firestore_safe(None) is None
    assert firestore_safe({"a": 1, "b": 1.5, "c": "x", "d": True}) == {"a": 1, "b": 1.5, "c": "x", "d": True}


def test_geopoint_and_reference():
    point = SimpleNamespace(latitude=52.1, longitude=4.3)
    ref = SimpleNamespace(path="users/u1")
    assert firestore_safe({"loc": point, "owner": ref}) == {
        "loc": {"latitude": 52.1, "longitude": 4.3},
        "owner": "users/u1",
    }


def test_nested_containers():
    out = firestore_safe({"n": [{"amount": Decimal("1.50")}, (b"\x00",)]})
    assert out == {"n": [{"amount": "1.50"}, ["AA=="]]}

from __future__ import annotations

from conftest import auth_headers, mk_property, mk_user

from app.db import session_scope
from app.search import SearchFilters, paginate, search_properties


def _ids(resp) -> list[str]:
    return [p["id"] for p in resp.json()["properties"]]


def test_no_filters_returns_active_newest_first(client):
    old = mk_property("Old", minutes=0)
    new = mk_property("New", minutes=10)
    mk_property("Sold one", status="Sold", minutes=20)
    mk_property("Hidden", status="Inactive", minutes=30)

    r = client.get("/properties")
    assert r.status_code == 200
    assert _ids(r) == [new.id, old.id]
    assert r.json()["pagination"] == {"page": 1, "limit": 12, "total": 2, "pages": 1}


def test_price_range_is_inclusive(client):
    mk_property("cheap", price=99999)
    lo = mk_property("low edge", price=100000)
    mid = mk_property("mid", price=150000)
    hi = mk_property("high edge", price=200000)
    mk_property("pricey", price=200001)

    r = client.get("/properties", params={"minPrice": 100000, "maxPrice": 200000})
    assert set(_ids(r)) == {lo.id, mid.id, hi.id}
    for p in r.json()["properties"]:
        assert 100000 <= p["payload"]["price"] <= 200000


def test_views_sort_breaks_ties_by_id(client):
    props = [mk_property(f"p{i}", views=v) for i, v in enumerate([5, 9, 5, 1])]
    r = client.get("/properties", params={"sortBy": "views"})
    expected = [p.id for p in sorted(props, key=lambda p: (-p.views, p.id))]
    assert _ids(r) == expected


def test_price_sorts(client):
    a = mk_property("a", price=300)
    b = mk_property("b", price=100)
    c = mk_property("c", price=200)
    assert _ids(client.get("/properties", params={"sortBy": "price_asc"})) == [b.id, c.id, a.id]
    assert _ids(client.get("/properties", params={"sortBy": "price_desc"})) == [a.id, c.id, b.id]


def test_pagination_and_page_past_end(client):
    for i in range(5):
        mk_property(f"p{i}", minutes=i)

    r = client.get("/properties", params={"page": 1, "limit": 2})
    body = r.json()
    assert len(body["properties"]) == 2
    assert body["pagination"] == {"page": 1, "limit": 2, "total": 5, "pages": 3}

    r = client.get("/properties", params={"page": 4, "limit": 2})
    assert r.status_code == 200
    assert r.json()["properties"] == []


def test_invalid_filter_value_gives_empty_result(client):
    mk_property("x")
    r = client.get("/properties", params={"minPrice": "abc"})
    assert r.status_code == 200
    assert r.json()["properties"] == []
    assert r.json()["pagination"]["total"] == 0


def test_amenities_any_overlap_case_insensitive(client):
    gym = mk_property("gym", amenities=["Gym", "Lift"])
    mk_property("park", amenities=["Park"])
    mk_property("bare")
    r = client.get("/properties", params=[("amenities", "gym"), ("amenities", "Swimming Pool")])
    assert _ids(r) == [gym.id]


def test_scalar_investment_type_matches_as_one_element_set(client):
    roi = mk_property("roi", category="Commercial", subtype="Office", investmentType="ROI")
    mk_property("yield", category="Commercial", subtype="Office", investmentType="Rental Yield")
    r = client.get("/properties", params={"investmentType": "roi,Lease Guarantee"})
    assert _ids(r) == [roi.id]


def test_exact_location_and_search(client):
    pune = mk_property("Riverside flat", city="Pune", locality="Baner")
    mk_property("Sea view", city="Goa")
    assert _ids(client.get("/properties", params={"city": "pune"})) == [pune.id]
    assert _ids(client.get("/properties", params={"locality": "BANER"})) == [pune.id]
    assert _ids(client.get("/properties", params={"search": "riverside"})) == [pune.id]
    assert _ids(client.get("/properties", params={"bhk": "3 BHK"})) == []


def test_boolean_filter(client):
    rera = mk_property("rera", reraApproved=True)
    mk_property("no rera", reraApproved=False)
    assert _ids(client.get("/properties", params={"reraApproved": "true"})) == [rera.id]
    assert _ids(client.get("/properties", params={"reraApproved": "maybe"})) == []


def test_status_override_only_for_admins(client):
    active = mk_property("active")
    sold = mk_property("sold", status="Sold")
    admin = mk_user("admin@example.com", role="admin")
    user = mk_user("user@example.com")

    assert _ids(client.get("/properties", params={"status": "Sold"})) == [active.id]
    assert _ids(client.get("/properties", params={"status": "Sold"}, headers=auth_headers(user))) == [active.id]
    assert _ids(client.get("/properties", params={"status": "Sold"}, headers=auth_headers(admin))) == [sold.id]


def test_post_search_accepts_json_filters(client):
    gym = mk_property("gym", price=120000, amenities=["Gym"])
    mk_property("other", price=500000, amenities=["Gym"])
    r = client.post("/properties/search", json={"filters": {"maxPrice": 200000, "amenities": ["Gym"]}, "limit": 5})
    assert r.status_code == 200
    assert _ids(r) == [gym.id]
    assert r.json()["pagination"]["limit"] == 5


def test_search_properties_directly():
    mk_property("a", purpose="Rent")
    mk_property("b", purpose="Buy")
    with session_scope() as db:
        result = search_properties(db, SearchFilters.from_mapping({"purpose": "Rent", "sortBy": "bogus"}))
        assert [p.title for p in result.properties] == ["a"]
        assert result.pagination()["pages"] == 1


def test_paginate_clamps():
    assert paginate(0, 0) == (1, 1, 0)
    assert paginate("x", "y") == (1, 12, 0)
    assert paginate(3, 500) == (3, 100, 200)


def test_filters_ignore_absent_and_unknown_keys():
    f = SearchFilters.from_mapping({"city": "", "colour": "blue", "amenities": [], "bhk": " 2 BHK "})
    assert f.values == {"bhk": "2 BHK"}
    assert f.sort_by == "newest"


def test_newest_sort_breaks_ties_by_id(client):
    props = [mk_property(f"same time {i}", minutes=5) for i in range(4)]
    older = mk_property("older", minutes=0)
    expected = sorted(p.id for p in props) + [older.id]
    assert _ids(client.get("/properties")) == expected


def test_price_sorts_break_ties_by_id(client):
    props = [mk_property(f"same price {i}", price=250000) for i in range(3)]
    cheap = mk_property("cheap", price=1000)
    tied = sorted(p.id for p in props)
    assert _ids(client.get("/properties", params={"sortBy": "price_asc"})) == [cheap.id] + tied
    assert _ids(client.get("/properties", params={"sortBy": "price_desc"})) == tied + [cheap.id]

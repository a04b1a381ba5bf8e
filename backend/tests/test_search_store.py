from __future__ import annotations

import pytest

from frontend_app.utils.search_store import DEFAULT_FILTERS, FILTER_KEYS, SearchFilterState


def test_default_state_is_newest_only():
    s = SearchFilterState()
    assert s.to_dict() == {"sortBy": "newest"}
    assert s.to_query_params() == [("sortBy", "newest")]


@pytest.mark.parametrize("empty", [None, ""])
def test_empty_values_unset_every_key(empty):
    s = SearchFilterState()
    for key in FILTER_KEYS:
        if key in DEFAULT_FILTERS:
            continue
        s.set_filter(key, "x")
        assert key in s
        s.set_filter(key, empty)
        assert key not in s
    assert s.to_dict() == DEFAULT_FILTERS


def test_values_are_stored_without_validation():
    s = SearchFilterState()
    s.set_filter("minPrice", "not-a-number")
    s.set_filter("bathrooms", 0)
    assert s.get("minPrice") == "not-a-number"
    # 0 is a value, not "unset".
    assert s.get("bathrooms") == 0


def test_remove_filter_is_noop_when_absent():
    s = SearchFilterState()
    s.remove_filter("city")
    s.set_filter("city", "Pune")
    s.remove_filter("city")
    assert "city" not in s


def test_clear_filters_restores_default():
    s = SearchFilterState()
    s.set_filter("city", "Pune")
    s.set_filter("sortBy", "price_asc")
    s.set_filter("amenities", ["Gym"])
    s.clear_filters()
    assert s.to_dict() == {"sortBy": "newest"}


def test_unknown_key_raises():
    s = SearchFilterState()
    with pytest.raises(KeyError):
        s.set_filter("colour", "blue")
    with pytest.raises(KeyError):
        SearchFilterState({"colour": "blue"})


def test_query_params_repeat_lists_and_lowercase_bools():
    s = SearchFilterState()
    s.set_filter("amenities", ["Gym", "Lift"])
    s.set_filter("reraApproved", True)
    s.set_filter("pantry", False)
    params = s.to_query_params()
    assert ("amenities", "Gym") in params
    assert ("amenities", "Lift") in params
    assert ("reraApproved", "true") in params
    assert ("pantry", "false") in params
    assert not any(k == "city" for k, _ in params)


def test_subscribers_are_notified_until_unsubscribed():
    s = SearchFilterState()
    seen = []
    unsubscribe = s.subscribe(seen.append)
    s.set_filter("city", "Pune")
    s.clear_filters()
    unsubscribe()
    s.set_filter("city", "Goa")
    assert seen == [{"sortBy": "newest", "city": "Pune"}, {"sortBy": "newest"}]


def test_states_are_independent():
    a = SearchFilterState()
    b = SearchFilterState()
    a.set_filter("city", "Pune")
    assert "city" not in b


def test_dict_round_trip_through_storage(tmp_path, monkeypatch):
    from frontend_app.utils import storage

    monkeypatch.setenv("APP_SESSION_PATH", str(tmp_path / "session.json"))
    s = SearchFilterState()
    s.set_filter("city", "Pune")
    s.set_filter("amenities", ["Gym"])
    storage.save_filters(s.to_dict())

    restored = SearchFilterState.from_dict(storage.load_filters())
    assert restored.to_dict() == s.to_dict()


def test_stale_saved_filters_still_load(tmp_path, monkeypatch):
    from frontend_app.utils import storage

    monkeypatch.setenv("APP_SESSION_PATH", str(tmp_path / "session.json"))
    storage.save_filters({"city": "Pune", "oldKey": "x", "sortBy": "views"})

    restored = SearchFilterState.from_dict(storage.load_filters())
    assert restored.to_dict() == {"city": "Pune", "sortBy": "views"}

from __future__ import annotations

import copy
import logging
from typing import Any, Callable


logger = logging.getLogger(__name__)


FILTER_KEYS: tuple[str, ...] = (
    "search",
    "category",
    "purpose",
    "subtype",
    "minPrice",
    "maxPrice",
    "minArea",
    "maxArea",
    "bhk",
    "bathrooms",
    "furnishing",
    "availableFor",
    "availableFrom",
    "constructionStatus",
    "possessionStatus",
    "investmentType",
    "powerCapacity",
    "meetingRooms",
    "pantry",
    "conferenceRoom",
    "cabins",
    "washrooms",
    "floorPreference",
    "locatedOn",
    "officeSpread",
    "situatedIn",
    "businessType",
    "city",
    "state",
    "locality",
    "amenities",
    "reraApproved",
    "ageOfProperty",
    "facing",
    "parking",
    "sortBy",
)

DEFAULT_FILTERS: dict[str, Any] = {"sortBy": "newest"}

Listener = Callable[[dict[str, Any]], None]


def _check_key(key: str) -> None:
    if key not in FILTER_KEYS:
        raise KeyError(key)


class SearchFilterState:
    """
    Search filters for one browsing session/page.

    Only present keys are stored; a missing key means "no constraint".
    Values are kept as given; the server decides what they mean.
    """

    def __init__(self, filters: dict[str, Any] | None = None) -> None:
        self._filters: dict[str, Any] = dict(DEFAULT_FILTERS)
        self._listeners: list[Listener] = []
        for k, v in (filters or {}).items():
            _check_key(k)
            if v is not None and v != "":
                self._filters[k] = v

    @property
    def filters(self) -> dict[str, Any]:
        return dict(self._filters)

    def get(self, key: str, default: Any = None) -> Any:
        _check_key(key)
        return self._filters.get(key, default)

    def __contains__(self, key: object) -> bool:
        return key in self._filters

    def subscribe(self, callback: Listener) -> Callable[[], None]:
        """Register a change listener. Returns a callable that unsubscribes it."""
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe

    def _notify(self) -> None:
        snapshot = self.filters
        for cb in list(self._listeners):
            cb(snapshot)

    def set_filter(self, key: str, value: Any) -> None:
        _check_key(key)
        if value is None or value == "":
            self._filters.pop(key, None)
        else:
            self._filters[key] = value
        self._notify()

    def remove_filter(self, key: str) -> None:
        _check_key(key)
        self._filters.pop(key, None)
        self._notify()

    def clear_filters(self) -> None:
        self._filters = dict(DEFAULT_FILTERS)
        self._notify()

    def to_query_params(self) -> list[tuple[str, str]]:
        """
        Pairs suitable for `requests(params=...)`. Lists become repeated
        parameters and booleans become "true"/"false".
        """
        return filters_to_params(self._filters)

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self._filters)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "SearchFilterState":
        """
        Restore a saved snapshot. Keys that are no longer filters are dropped
        so an old session file still loads.
        """
        known: dict[str, Any] = {}
        for k, v in (data or {}).items():
            if k in FILTER_KEYS:
                known[k] = v
            else:
                logger.warning("Dropping unknown saved filter %r", k)
        return cls(known)


def _param_value(v: Any) -> str:
    if isinstance(v, bool):
        return "true" if v else "false"
    return str(v)


def filters_to_params(filters: dict[str, Any]) -> list[tuple[str, str]]:
    out: list[tuple[str, str]] = []
    for key, value in filters.items():
        if value is None or value == "":
            continue
        if isinstance(value, (list, tuple, set)):
            for item in value:
                if item is None or item == "":
                    continue
                out.append((key, _param_value(item)))
        else:
            out.append((key, _param_value(value)))
    return out

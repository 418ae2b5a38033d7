"""Shared fixtures: an in-memory stand-in for the supabase-py query builder."""
from __future__ import annotations

import copy
import itertools
from typing import Any, Callable, Optional

import pytest

TABLE_DEFAULTS = {
    "listings": {"verified": False, "featured": False, "active": True},
    "locations": {},
}
UNIQUE_COLUMNS = {"listings": ("external_id", "slug"), "locations": ()}


class FakeAPIError(Exception):
    """Shaped like postgrest.exceptions.APIError (message + code)."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code


class FakeResponse:
    def __init__(self, data: list[dict[str, Any]]):
        self.data = data


def _sort_key(col: str) -> Callable[[dict[str, Any]], tuple]:
    def key(row: dict[str, Any]) -> tuple:
        value = row.get(col)
        return (value is None, value if value is not None else 0)
    return key


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.action = "select"
        self.columns = "*"
        self.payload: Any = None
        self.on_conflict: Optional[str] = None
        self.filters: list[Callable[[dict[str, Any]], bool]] = []
        self.orders: list[tuple[str, bool]] = []
        self._limit: Optional[int] = None
        self._range: Optional[tuple[int, int]] = None

    def select(self, columns: str = "*") -> "FakeQuery":
        self.action = "select"
        self.columns = columns
        return self

    def eq(self, col: str, value: Any) -> "FakeQuery":
        self.filters.append(lambda r: r.get(col) == value)
        return self

    def neq(self, col: str, value: Any) -> "FakeQuery":
        self.filters.append(lambda r: r.get(col) != value)
        return self

    def order(self, col: str, desc: bool = False) -> "FakeQuery":
        self.orders.append((col, desc))
        return self

    def limit(self, n: int) -> "FakeQuery":
        self._limit = n
        return self

    def range(self, start: int, end: int) -> "FakeQuery":
        self._range = (start, end)
        return self

    def upsert(self, rows: Any, on_conflict: str = "id") -> "FakeQuery":
        self.action = "upsert"
        self.payload = rows if isinstance(rows, list) else [rows]
        self.on_conflict = on_conflict
        return self

    def insert(self, rows: Any) -> "FakeQuery":
        self.action = "insert"
        self.payload = rows if isinstance(rows, list) else [rows]
        return self

    def update(self, values: dict[str, Any]) -> "FakeQuery":
        self.action = "update"
        self.payload = values
        return self

    def execute(self) -> FakeResponse:
        self.db.executed.append((self.table_name, self.action))
        if self.db.fail_with is not None:
            raise self.db.fail_with
        handler = getattr(self, f"_execute_{self.action}")
        return FakeResponse(copy.deepcopy(handler()))

    def _rows(self) -> list[dict[str, Any]]:
        return self.db.tables.setdefault(self.table_name, [])

    def _matching(self) -> list[dict[str, Any]]:
        return [r for r in self._rows() if all(f(r) for f in self.filters)]

    def _execute_select(self) -> list[dict[str, Any]]:
        rows = self._matching()
        for col, desc in reversed(self.orders):
            rows = sorted(rows, key=_sort_key(col), reverse=desc)
        if self._range is not None:
            rows = rows[self._range[0]: self._range[1] + 1]
        if self._limit is not None:
            rows = rows[: self._limit]
        if self.columns.strip() == "*":
            return rows
        cols = [c.strip() for c in self.columns.split(",")]
        return [{c: r.get(c) for c in cols} for r in rows]

    def _check_unique(self, row: dict[str, Any], existing: Optional[dict[str, Any]]) -> None:
        for col in UNIQUE_COLUMNS.get(self.table_name, ()):
            if row.get(col) is None:
                continue
            for other in self._rows():
                if other is not existing and other.get(col) == row[col]:
                    raise FakeAPIError(
                        f'duplicate key value violates unique constraint "{self.table_name}_{col}_key"',
                        code="23505",
                    )

    def _insert_row(self, row: dict[str, Any]) -> dict[str, Any]:
        self._check_unique(row, None)
        new = {**TABLE_DEFAULTS.get(self.table_name, {}), "id": next(self.db.ids), **row}
        self._rows().append(new)
        return new

    def _execute_upsert(self) -> list[dict[str, Any]]:
        if self.db.before_write is not None:
            hook, self.db.before_write = self.db.before_write, None
            hook(self.db)
        out = []
        for row in self.payload:
            key = self.on_conflict
            existing = next((r for r in self._rows() if r.get(key) == row.get(key)), None)
            if existing is None:
                out.append(self._insert_row(row))
            else:
                self._check_unique(row, existing)
                existing.update(row)
                out.append(existing)
        return out

    def _execute_insert(self) -> list[dict[str, Any]]:
        return [self._insert_row(row) for row in self.payload]

    def _execute_update(self) -> list[dict[str, Any]]:
        rows = self._matching()
        for row in rows:
            row.update(self.payload)
        return rows


class FakeRpc:
    def __init__(self, db: "FakeSupabase", name: str, params: dict[str, Any]):
        self.db = db
        self.name = name
        self.params = params

    def execute(self) -> FakeResponse:
        self.db.rpc_calls.append((self.name, self.params))
        if self.db.fail_with is not None:
            raise self.db.fail_with
        return FakeResponse(self.db.rpc_handlers[self.name](self.params))


class FakeSupabase:
    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {"listings": [], "locations": []}
        self.rpc_handlers: dict[str, Callable[[dict[str, Any]], list[dict[str, Any]]]] = {}
        self.rpc_calls: list[tuple[str, dict[str, Any]]] = []
        self.executed: list[tuple[str, str]] = []
        self.fail_with: Optional[Exception] = None
        # Called once, right before the next upsert (to simulate a concurrent writer).
        self.before_write: Optional[Callable[["FakeSupabase"], None]] = None
        self.ids = itertools.count(1)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, name: str, params: dict[str, Any]) -> FakeRpc:
        return FakeRpc(self, name, params)

    def add(self, table: str, **row: Any) -> dict[str, Any]:
        new = {**TABLE_DEFAULTS.get(table, {}), "id": next(self.ids), **row}
        self.tables.setdefault(table, []).append(new)
        return new


@pytest.fixture
def fake_db() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def zoho_record() -> dict[str, Any]:
    """A Zoho Account as returned by GET /crm/v2/Accounts/{id}."""
    return {
        "id": "5843000000123",
        "Account_Name": "Sunny Acres, Orchard!",
        "Slug": None,
        "Billing_Street": "12 Orchard Rd",
        "Billing_City": "Guelph",
        "Billing_State": "Ontario",
        "Billing_Code": "N1H 1A1",
        "Billing_Country": "Canada",
        "Latitude": "43.5448",
        "Longitude": "-80.2482",
        "Phone": "519-555-0100",
        "Email": "hello@sunnyacres.example",
        "Website": "https://sunnyacres.example",
        "Facebook": "",
        "Instagram": "https://instagram.com/sunnyacres",
        "Categories": ["Apple Orchard", "Pumpkin Patch"],
        "Service_Types": ["Pick Your Own", "Farm Store"],
        "Amenities": "Parking, Washrooms",
        "Varieties": ["Honeycrisp", "Gala"],
        "Payment_Methods": None,
        "Pet_Friendly": "Yes",
        "Price_Range": "$39 - $89",
        "Established_Year": "1987",
        "Season_Open": "2025-08-15",
        "Season_Close": "2025-10-31",
        "Hours_Monday": "Closed",
        "Hours_Tuesday": "9:00 AM - 5:00 PM",
        "Hours_Wednesday": "9:00 AM - 5:00 PM",
        "Hours_Thursday": "9:00 AM - 5:00 PM",
        "Hours_Friday": "9:00 AM - 7:00 PM",
        "Hours_Saturday": "8:00 AM - 7:00 PM",
        "Hours_Sunday": "8:00 AM - 5:00 PM",
        "Description": "Family orchard with u-pick apples and a fall pumpkin patch.",
        "Place_ID": "ChIJ-sunny",
    }

# client.py
"""
HTTP client for the grid API with a query cache.

Queries are cached by procedure name and input. A successful mutation does
not patch cached data: it invalidates the queries that depend on it, and
the next read refetches them. A failed mutation is logged and re-raised,
and the cache is left as it was.
"""

import json
import logging

import httpx

from errors import GridError, from_payload

logger = logging.getLogger(__name__)


def _cache_key(procedure, params):
    return procedure, json.dumps(params or {}, sort_keys=True)


class QueryCache:
    def __init__(self):
        self._entries = {}

    def get(self, procedure, params):
        return self._entries.get(_cache_key(procedure, params))

    def __contains__(self, key):
        procedure, params = key
        return _cache_key(procedure, params) in self._entries

    def set(self, procedure, params, value):
        self._entries[_cache_key(procedure, params)] = value

    def invalidate(self, procedure, params=None):
        """Drop one cached query, or every cached input of ``procedure`` when params is None."""
        if params is not None:
            self._entries.pop(_cache_key(procedure, params), None)
            return
        for key in [k for k in self._entries if k[0] == procedure]:
            del self._entries[key]

    def __len__(self):
        return len(self._entries)


class GridClient:
    """Calls grid procedures as ``user_id`` over ``http``, an httpx.Client
    whose base_url points at the server."""

    def __init__(self, http, user_id, user_header="X-User-Id"):
        self.http = http
        self.user_id = user_id
        self.user_header = user_header
        self.cache = QueryCache()

    @classmethod
    def connect(cls, base_url, user_id, timeout=10.0, **kwargs):
        return cls(httpx.Client(base_url=base_url, timeout=timeout), user_id, **kwargs)

    def close(self):
        self.http.close()

    # ----------------- transport -----------------
    def _unwrap(self, response):
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if response.is_success and payload.get("status") == "success":
            return payload.get("data")
        raise from_payload(payload, response.status_code)

    def query(self, procedure, params=None):
        cached = self.cache.get(procedure, params)
        if cached is not None:
            return cached
        response = self.http.get(
            f"/api/{procedure}",
            params=params or {},
            headers={self.user_header: self.user_id},
        )
        data = self._unwrap(response)
        if data is not None:
            self.cache.set(procedure, params, data)
        return data

    def mutate(self, procedure, payload, invalidates=()):
        """Run a mutation, then invalidate ``invalidates`` as (procedure, params) pairs."""
        try:
            response = self.http.post(
                f"/api/{procedure}",
                json=payload,
                headers={self.user_header: self.user_id},
            )
            data = self._unwrap(response)
        except (GridError, httpx.HTTPError) as e:
            logger.error("Failed to run %s: %s", procedure, e)
            raise
        for query_name, params in invalidates:
            self.cache.invalidate(query_name, params)
        return data

    # ----------------- bases -----------------
    def list_bases(self):
        return self.query("base.getAll")

    def create_base(self, name):
        return self.mutate("base.create", {"name": name},
                           invalidates=[("base.getAll", None)])

    def get_base(self, base_id):
        return self.query("base.getById", {"id": base_id})

    # ----------------- tables -----------------
    def create_table(self, base_id, name):
        return self.mutate("table.create", {"baseId": base_id, "name": name},
                           invalidates=[("base.getById", {"id": base_id})])

    def ensure_default_table(self, base_id):
        return self.mutate("table.ensureDefault", {"baseId": base_id},
                           invalidates=[("base.getById", {"id": base_id})])

    def get_table(self, table_id):
        return self.query("table.getById", {"id": table_id})

    def _table_mutation(self, table_id, procedure, payload):
        return self.mutate(procedure, payload,
                           invalidates=[("table.getById", {"id": table_id})])

    def update_column_name(self, table_id, column_id, name):
        return self._table_mutation(table_id, "table.updateColumnName",
                                    {"columnId": column_id, "name": name})

    def update_cell(self, table_id, row_id, column_id, value):
        return self._table_mutation(table_id, "table.updateCell",
                                    {"rowId": row_id, "columnId": column_id, "value": value})

    def add_column(self, table_id, name):
        return self._table_mutation(table_id, "table.addColumn",
                                    {"tableId": table_id, "name": name})

    def add_row(self, table_id):
        return self._table_mutation(table_id, "table.addRow", {"tableId": table_id})

    def delete_column(self, table_id, column_id):
        return self._table_mutation(table_id, "table.deleteColumn", {"columnId": column_id})

    def delete_row(self, table_id, row_id):
        return self._table_mutation(table_id, "table.deleteRow", {"rowId": row_id})


def cell_matrix(table):
    """Row values in column order; a missing cell reads as ""."""
    column_ids = [column["id"] for column in table["columns"]]
    matrix = []
    for row in table["rows"]:
        by_column = {cell["columnId"]: cell["value"] for cell in row["cells"]}
        matrix.append([by_column.get(column_id, "") for column_id in column_ids])
    return matrix

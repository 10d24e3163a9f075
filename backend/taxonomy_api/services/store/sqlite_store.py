"""SQLite graph store: edge list + recursive CTE traversal.

Blocking sqlite3 calls run in worker threads so the event loop keeps
serving other requests while a recursive query executes. Reads are spread
over optional read-only replicas and fall back to the primary on failure.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import sqlite3
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone

from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from taxonomy_api.exceptions import (
    BackendUnavailableError,
    ConflictError,
    CycleRejectedError,
)
from taxonomy_api.models.concept_models import Concept, ConceptCreate, Edge
from taxonomy_api.services.store.base import BaseGraphStore, KeysetAfter
from taxonomy_api.services.store.replica_router import ReplicaRouter

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS concepts (
    id          TEXT PRIMARY KEY,
    label       TEXT NOT NULL,
    definition  TEXT,
    level       INTEGER NOT NULL DEFAULT 0,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_concepts_level_label ON concepts(level, label, id);
CREATE INDEX IF NOT EXISTS idx_concepts_label ON concepts(label);

CREATE TABLE IF NOT EXISTS variants (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    concept_id  TEXT NOT NULL REFERENCES concepts(id) ON DELETE CASCADE ON UPDATE CASCADE,
    name        TEXT NOT NULL,
    created_at  TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_variants_concept ON variants(concept_id);

CREATE TABLE IF NOT EXISTS edges (
    parent_id   TEXT NOT NULL REFERENCES concepts(id) ON DELETE CASCADE ON UPDATE CASCADE,
    child_id    TEXT NOT NULL REFERENCES concepts(id) ON DELETE CASCADE ON UPDATE CASCADE,
    created_at  TEXT NOT NULL,
    PRIMARY KEY (parent_id, child_id)
);
CREATE INDEX IF NOT EXISTS idx_edges_child ON edges(child_id);
"""

_COLUMNS = "c.id, c.label, c.definition, c.level, c.created_at, c.updated_at"

# Any row means `to_id` (second parameter) lies below `from_id` (first)
_REACH_SQL = """
    WITH RECURSIVE reach(id) AS (
        SELECT child_id FROM edges WHERE parent_id = ?
        UNION
        SELECT e.child_id FROM edges e JOIN reach r ON e.parent_id = r.id
    )
    SELECT 1 FROM reach WHERE id = ? LIMIT 1
"""

# Keep IN (...) lists well below SQLITE_MAX_VARIABLE_NUMBER
_BATCH = 500


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _chunks(ids: list[str], size: int = _BATCH):
    for i in range(0, len(ids), size):
        yield ids[i : i + size]


def _placeholders(n: int) -> str:
    return ",".join("?" * n)


def _row_to_concept(row: sqlite3.Row) -> Concept:
    return Concept(
        id=row["id"],
        label=row["label"],
        definition=row["definition"],
        level=row["level"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _is_transient(exc: BaseException) -> bool:
    if not isinstance(exc, sqlite3.OperationalError):
        return False
    msg = str(exc).lower()
    return "locked" in msg or "busy" in msg


_retry_transient = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.05, min=0.05, max=1),
    retry=retry_if_exception(_is_transient),
    reraise=True,
)


@dataclass
class _Handle:
    conn: sqlite3.Connection
    name: str
    lock: threading.Lock = field(default_factory=threading.Lock)


def _connect(path: str, read_only: bool = False) -> sqlite3.Connection:
    if read_only:
        conn = sqlite3.connect(f"file:{path}?mode=ro", uri=True, check_same_thread=False)
    else:
        conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


class SqliteGraphStore(BaseGraphStore):
    """Graph store backed by a SQLite database file (or ":memory:")."""

    def __init__(
        self,
        db_path: str,
        replica_paths: list[str] | None = None,
        router: ReplicaRouter | None = None,
    ):
        self.db_path = db_path
        self._primary = _Handle(_connect(db_path), name="primary")
        self._primary.conn.executescript(SCHEMA)
        if db_path != ":memory:":
            self._primary.conn.execute("PRAGMA journal_mode = WAL")
        self._replicas = [
            _Handle(_connect(p, read_only=True), name=f"replica:{p}")
            for p in (replica_paths or [])
        ]
        self._router = router or ReplicaRouter()
        self._request_index = itertools.count()
        logger.info(
            "Graph store opened: %s (%d read replicas)", db_path, len(self._replicas)
        )

    # --- execution plumbing ---

    @_retry_transient
    def _call_with_retry(self, handle: _Handle, fn, *args):
        with handle.lock:
            return fn(handle.conn, *args)

    def _call(self, handle: _Handle, fn, *args):
        try:
            return self._call_with_retry(handle, fn, *args)
        except sqlite3.OperationalError as e:
            raise BackendUnavailableError(f"Graph store unavailable ({handle.name}): {e}") from e

    async def _in_thread(self, handle: _Handle, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._call, handle, fn, *args)

    async def _read(self, fn, *args):
        slot = self._router.pick(next(self._request_index), len(self._replicas))
        if slot is not None:
            replica = self._replicas[slot]
            try:
                return await self._in_thread(replica, fn, *args)
            except BackendUnavailableError as e:
                logger.warning("Read on %s failed, falling back to primary: %s", replica.name, e)
        return await self._in_thread(self._primary, fn, *args)

    async def _write(self, fn, *args):
        return await self._in_thread(self._primary, fn, *args)

    async def close(self) -> None:
        for handle in [self._primary, *self._replicas]:
            with handle.lock:
                handle.conn.close()

    # --- concepts ---

    async def get_concept(self, concept_id: str) -> Concept | None:
        def q(conn):
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM concepts c WHERE c.id = ?", (concept_id,)
            ).fetchone()
            return _row_to_concept(row) if row else None

        return await self._read(q)

    async def get_concepts(self, concept_ids: list[str]) -> dict[str, Concept]:
        ids = list(dict.fromkeys(concept_ids))

        def q(conn):
            found: dict[str, Concept] = {}
            for chunk in _chunks(ids):
                rows = conn.execute(
                    f"SELECT {_COLUMNS} FROM concepts c WHERE c.id IN ({_placeholders(len(chunk))})",
                    chunk,
                ).fetchall()
                for row in rows:
                    found[row["id"]] = _row_to_concept(row)
            return found

        if not ids:
            return {}
        return await self._read(q)

    async def insert_concept(self, data: ConceptCreate) -> Concept:
        now = _now()

        def q(conn):
            try:
                with conn:
                    conn.execute(
                        "INSERT INTO concepts (id, label, definition, level, created_at, updated_at) "
                        "VALUES (?, ?, ?, ?, ?, ?)",
                        (data.id, data.label, data.definition, data.level, now, now),
                    )
                    conn.executemany(
                        "INSERT INTO variants (concept_id, name, created_at) VALUES (?, ?, ?)",
                        [(data.id, name, now) for name in data.variants],
                    )
            except sqlite3.IntegrityError as e:
                raise ConflictError(f"Concept {data.id} already exists") from e
            return Concept(
                id=data.id,
                label=data.label,
                definition=data.definition,
                level=data.level,
                created_at=now,
                updated_at=now,
            )

        return await self._write(q)

    async def update_concept(
        self,
        concept_id: str,
        fields: dict,
        variants: list[str] | None = None,
    ) -> Concept | None:
        allowed = {k: v for k, v in fields.items() if k in ("label", "definition", "level")}
        now = _now()

        def q(conn):
            with conn:
                assignments = ", ".join(f"{k} = ?" for k in allowed)
                sets = f"{assignments}, updated_at = ?" if assignments else "updated_at = ?"
                cur = conn.execute(
                    f"UPDATE concepts SET {sets} WHERE id = ?",
                    (*allowed.values(), now, concept_id),
                )
                if cur.rowcount == 0:
                    return None
                if variants is not None:
                    conn.execute("DELETE FROM variants WHERE concept_id = ?", (concept_id,))
                    conn.executemany(
                        "INSERT INTO variants (concept_id, name, created_at) VALUES (?, ?, ?)",
                        [(concept_id, name, now) for name in variants],
                    )
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM concepts c WHERE c.id = ?", (concept_id,)
            ).fetchone()
            return _row_to_concept(row) if row else None

        return await self._write(q)

    async def delete_concept(self, concept_id: str) -> bool:
        def q(conn):
            with conn:
                cur = conn.execute("DELETE FROM concepts WHERE id = ?", (concept_id,))
            return cur.rowcount > 0

        return await self._write(q)

    async def get_variants(self, concept_id: str) -> list[str]:
        def q(conn):
            rows = conn.execute(
                "SELECT name FROM variants WHERE concept_id = ? ORDER BY id", (concept_id,)
            ).fetchall()
            return [r["name"] for r in rows]

        return await self._read(q)

    async def variants_of_many(self, concept_ids: list[str]) -> dict[str, list[str]]:
        ids = list(dict.fromkeys(concept_ids))

        def q(conn):
            out: dict[str, list[str]] = {}
            for chunk in _chunks(ids):
                rows = conn.execute(
                    "SELECT concept_id, name FROM variants "
                    f"WHERE concept_id IN ({_placeholders(len(chunk))}) ORDER BY id",
                    chunk,
                ).fetchall()
                for r in rows:
                    out.setdefault(r["concept_id"], []).append(r["name"])
            return out

        if not ids:
            return {}
        return await self._read(q)

    async def list_by_level(self, level: int, limit: int) -> list[Concept]:
        def q(conn):
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM concepts c WHERE c.level = ? "
                "ORDER BY c.label, c.id LIMIT ?",
                (level, limit),
            ).fetchall()
            return [_row_to_concept(r) for r in rows]

        return await self._read(q)

    async def list_concepts_page(
        self,
        level: int | None,
        after: KeysetAfter | None,
        descending: bool,
        limit: int,
    ) -> list[Concept]:
        op = "<" if descending else ">"
        order = "DESC" if descending else "ASC"
        where: list[str] = []
        params: list = []
        if level is not None:
            where.append("c.level = ?")
            params.append(level)
        if after is not None:
            where.append(f"(c.level, c.label, c.id) {op} (?, ?, ?)")
            params.extend(after)
        clause = f"WHERE {' AND '.join(where)}" if where else ""

        def q(conn):
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM concepts c {clause} "
                f"ORDER BY c.level {order}, c.label {order}, c.id {order} LIMIT ?",
                (*params, limit),
            ).fetchall()
            return [_row_to_concept(r) for r in rows]

        return await self._read(q)

    async def list_concepts_after_id(self, after_id: str | None, limit: int) -> list[Concept]:
        def q(conn):
            if after_id is None:
                rows = conn.execute(
                    f"SELECT {_COLUMNS} FROM concepts c ORDER BY c.id LIMIT ?", (limit,)
                ).fetchall()
            else:
                rows = conn.execute(
                    f"SELECT {_COLUMNS} FROM concepts c WHERE c.id > ? ORDER BY c.id LIMIT ?",
                    (after_id, limit),
                ).fetchall()
            return [_row_to_concept(r) for r in rows]

        return await self._read(q)

    # --- edges ---

    async def insert_edge(self, parent_id: str, child_id: str) -> Edge:
        now = _now()

        def q(conn):
            try:
                with conn:
                    conn.execute(
                        "INSERT INTO edges (parent_id, child_id, created_at) VALUES (?, ?, ?)",
                        (parent_id, child_id, now),
                    )
            except sqlite3.IntegrityError as e:
                raise ConflictError(f"Edge {parent_id} -> {child_id} already exists") from e
            return Edge(parent_id=parent_id, child_id=child_id, created_at=now)

        return await self._write(q)

    async def insert_edge_if_acyclic(self, parent_id: str, child_id: str) -> Edge:
        now = _now()

        def q(conn):
            # Reachability check and insert share one write transaction, so a
            # concurrent opposing insert cannot slip in between them
            conn.execute("BEGIN IMMEDIATE")
            try:
                closes_cycle = conn.execute(
                    _REACH_SQL, (child_id, parent_id)
                ).fetchone() is not None
                if closes_cycle:
                    raise CycleRejectedError(parent_id, child_id)
                conn.execute(
                    "INSERT INTO edges (parent_id, child_id, created_at) VALUES (?, ?, ?)",
                    (parent_id, child_id, now),
                )
            except sqlite3.IntegrityError as e:
                conn.rollback()
                raise ConflictError(f"Edge {parent_id} -> {child_id} already exists") from e
            except Exception:
                conn.rollback()
                raise
            conn.commit()
            return Edge(parent_id=parent_id, child_id=child_id, created_at=now)

        return await self._write(q)

    async def delete_edge(self, parent_id: str, child_id: str) -> bool:
        def q(conn):
            with conn:
                cur = conn.execute(
                    "DELETE FROM edges WHERE parent_id = ? AND child_id = ?",
                    (parent_id, child_id),
                )
            return cur.rowcount > 0

        return await self._write(q)

    async def get_edge(self, parent_id: str, child_id: str) -> Edge | None:
        def q(conn):
            row = conn.execute(
                "SELECT parent_id, child_id, created_at FROM edges "
                "WHERE parent_id = ? AND child_id = ?",
                (parent_id, child_id),
            ).fetchone()
            if row is None:
                return None
            return Edge(
                parent_id=row["parent_id"],
                child_id=row["child_id"],
                created_at=row["created_at"],
            )

        return await self._read(q)

    async def get_parent_ids(self, concept_id: str) -> list[str]:
        def q(conn):
            rows = conn.execute(
                "SELECT parent_id FROM edges WHERE child_id = ? ORDER BY rowid", (concept_id,)
            ).fetchall()
            return [r["parent_id"] for r in rows]

        return await self._read(q)

    async def get_parents(self, concept_id: str) -> list[Concept]:
        def q(conn):
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM edges e JOIN concepts c ON c.id = e.parent_id "
                "WHERE e.child_id = ? ORDER BY e.rowid",
                (concept_id,),
            ).fetchall()
            return [_row_to_concept(r) for r in rows]

        return await self._read(q)

    async def get_children(self, concept_id: str) -> list[Concept]:
        def q(conn):
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM edges e JOIN concepts c ON c.id = e.child_id "
                "WHERE e.parent_id = ? ORDER BY e.rowid",
                (concept_id,),
            ).fetchall()
            return [_row_to_concept(r) for r in rows]

        return await self._read(q)

    async def parents_of_many(self, concept_ids: list[str]) -> list[tuple[str, Concept]]:
        return await self._relations_of_many(concept_ids, upward=True)

    async def children_of_many(self, concept_ids: list[str]) -> list[tuple[str, Concept]]:
        return await self._relations_of_many(concept_ids, upward=False)

    async def _relations_of_many(
        self, concept_ids: list[str], upward: bool
    ) -> list[tuple[str, Concept]]:
        ids = list(dict.fromkeys(concept_ids))
        owner, other = ("child_id", "parent_id") if upward else ("parent_id", "child_id")

        def q(conn):
            out: list[tuple[str, Concept]] = []
            for chunk in _chunks(ids):
                rows = conn.execute(
                    f"SELECT e.{owner} AS owner_id, {_COLUMNS} FROM edges e "
                    f"JOIN concepts c ON c.id = e.{other} "
                    f"WHERE e.{owner} IN ({_placeholders(len(chunk))}) ORDER BY e.rowid",
                    chunk,
                ).fetchall()
                out.extend((r["owner_id"], _row_to_concept(r)) for r in rows)
            return out

        if not ids:
            return []
        return await self._read(q)

    async def parent_ids_of_many(self, concept_ids: list[str]) -> dict[str, list[str]]:
        return await self._relation_ids_of_many(concept_ids, upward=True)

    async def child_ids_of_many(self, concept_ids: list[str]) -> dict[str, list[str]]:
        return await self._relation_ids_of_many(concept_ids, upward=False)

    async def _relation_ids_of_many(
        self, concept_ids: list[str], upward: bool
    ) -> dict[str, list[str]]:
        ids = list(dict.fromkeys(concept_ids))
        owner, other = ("child_id", "parent_id") if upward else ("parent_id", "child_id")

        def q(conn):
            out: dict[str, list[str]] = {i: [] for i in ids}
            for chunk in _chunks(ids):
                rows = conn.execute(
                    f"SELECT {owner} AS owner_id, {other} AS other_id FROM edges "
                    f"WHERE {owner} IN ({_placeholders(len(chunk))}) ORDER BY rowid",
                    chunk,
                ).fetchall()
                for r in rows:
                    out[r["owner_id"]].append(r["other_id"])
            return out

        if not ids:
            return {}
        return await self._read(q)

    async def edges_among(self, concept_ids: list[str]) -> list[tuple[str, str]]:
        ids = list(dict.fromkeys(concept_ids))
        id_set = set(ids)

        def q(conn):
            out: list[tuple[str, str]] = []
            for chunk in _chunks(ids):
                rows = conn.execute(
                    "SELECT parent_id, child_id FROM edges "
                    f"WHERE parent_id IN ({_placeholders(len(chunk))}) ORDER BY rowid",
                    chunk,
                ).fetchall()
                out.extend(
                    (r["parent_id"], r["child_id"]) for r in rows if r["child_id"] in id_set
                )
            return out

        if len(ids) < 2:
            return []
        return await self._read(q)

    async def list_children(self, concept_id: str, limit: int, offset: int) -> list[Concept]:
        def q(conn):
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM edges e JOIN concepts c ON c.id = e.child_id "
                "WHERE e.parent_id = ? ORDER BY c.level, c.label, c.id LIMIT ? OFFSET ?",
                (concept_id, limit, offset),
            ).fetchall()
            return [_row_to_concept(r) for r in rows]

        return await self._read(q)

    async def list_parents(self, concept_id: str, limit: int, offset: int) -> list[Concept]:
        def q(conn):
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM edges e JOIN concepts c ON c.id = e.parent_id "
                "WHERE e.child_id = ? ORDER BY c.level, c.label, c.id LIMIT ? OFFSET ?",
                (concept_id, limit, offset),
            ).fetchall()
            return [_row_to_concept(r) for r in rows]

        return await self._read(q)

    async def list_children_page(
        self,
        concept_id: str,
        after: KeysetAfter | None,
        descending: bool,
        limit: int,
    ) -> list[Concept]:
        return await self._relation_page(concept_id, after, descending, limit, upward=False)

    async def list_parents_page(
        self,
        concept_id: str,
        after: KeysetAfter | None,
        descending: bool,
        limit: int,
    ) -> list[Concept]:
        return await self._relation_page(concept_id, after, descending, limit, upward=True)

    async def _relation_page(
        self,
        concept_id: str,
        after: KeysetAfter | None,
        descending: bool,
        limit: int,
        upward: bool,
    ) -> list[Concept]:
        owner, other = ("child_id", "parent_id") if upward else ("parent_id", "child_id")
        op = "<" if descending else ">"
        order = "DESC" if descending else "ASC"
        keyset = f"AND (c.level, c.label, c.id) {op} (?, ?, ?)" if after is not None else ""
        params = (concept_id, *(after or ()), limit)

        def q(conn):
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM edges e JOIN concepts c ON c.id = e.{other} "
                f"WHERE e.{owner} = ? {keyset} "
                f"ORDER BY c.level {order}, c.label {order}, c.id {order} LIMIT ?",
                params,
            ).fetchall()
            return [_row_to_concept(r) for r in rows]

        return await self._read(q)

    # --- recursive queries ---

    async def recursive_ancestors(self, concept_id: str, limit: int) -> list[Concept]:
        def q(conn):
            rows = conn.execute(
                f"""
                WITH RECURSIVE anc(id) AS (
                    SELECT parent_id FROM edges WHERE child_id = ?
                    UNION
                    SELECT e.parent_id FROM edges e JOIN anc a ON e.child_id = a.id
                )
                SELECT {_COLUMNS} FROM anc JOIN concepts c ON c.id = anc.id
                WHERE c.id != ?
                LIMIT ?
                """,
                (concept_id, concept_id, limit),
            ).fetchall()
            return [_row_to_concept(r) for r in rows]

        return await self._read(q)

    async def recursive_descendants(self, concept_id: str, limit: int) -> list[Concept]:
        def q(conn):
            rows = conn.execute(
                f"""
                WITH RECURSIVE des(id) AS (
                    SELECT child_id FROM edges WHERE parent_id = ?
                    UNION
                    SELECT e.child_id FROM edges e JOIN des d ON e.parent_id = d.id
                )
                SELECT {_COLUMNS} FROM des JOIN concepts c ON c.id = des.id
                WHERE c.id != ?
                LIMIT ?
                """,
                (concept_id, concept_id, limit),
            ).fetchall()
            return [_row_to_concept(r) for r in rows]

        return await self._read(q)

    async def recursive_paths_to_root(
        self,
        concept_id: str,
        max_depth: int,
        limit: int,
    ) -> tuple[list[tuple[list[str], bool]], bool]:
        # Upper bound on rows the walk may generate; keeps high fan-in graphs bounded
        row_budget = max(limit, 1) * (max_depth + 1) * 8
        walk = """
            WITH RECURSIVE walk(node_id, path, depth) AS (
                SELECT ?, ',' || ? || ',', 0
                UNION ALL
                SELECT e.parent_id, w.path || e.parent_id || ',', w.depth + 1
                FROM walk w JOIN edges e ON e.child_id = w.node_id
                WHERE w.depth < ?
                  AND instr(w.path, ',' || e.parent_id || ',') = 0
                LIMIT ?
            )
        """
        walk_params = (concept_id, concept_id, max_depth, row_budget)

        def q(conn):
            walked = conn.execute(
                walk + "SELECT COUNT(*) FROM walk", walk_params
            ).fetchone()[0]
            rows = conn.execute(
                walk
                + """
                SELECT path,
                       NOT EXISTS (SELECT 1 FROM edges p WHERE p.child_id = walk.node_id) AS is_root
                FROM walk
                WHERE NOT EXISTS (SELECT 1 FROM edges p WHERE p.child_id = walk.node_id)
                   OR depth = ?
                LIMIT ?
                """,
                walk_params + (max_depth, limit),
            ).fetchall()
            out: list[tuple[list[str], bool]] = []
            for r in rows:
                ids = [p for p in r["path"].split(",") if p]
                ids.reverse()
                out.append((ids, not r["is_root"]))
            return out, walked >= row_budget

        return await self._read(q)

    async def can_reach(self, from_id: str, to_id: str) -> bool:
        # Always against the primary: replicas may lag behind a concurrent insert
        def q(conn):
            return conn.execute(_REACH_SQL, (from_id, to_id)).fetchone() is not None

        return await self._write(q)

    # --- counts ---

    async def count_concepts(self, level: int | None = None) -> int:
        def q(conn):
            if level is None:
                return conn.execute("SELECT COUNT(*) FROM concepts").fetchone()[0]
            return conn.execute(
                "SELECT COUNT(*) FROM concepts WHERE level = ?", (level,)
            ).fetchone()[0]

        return await self._read(q)

    async def count_edges(self) -> int:
        def q(conn):
            return conn.execute("SELECT COUNT(*) FROM edges").fetchone()[0]

        return await self._read(q)

    async def count_children(self, concept_id: str) -> int:
        def q(conn):
            return conn.execute(
                "SELECT COUNT(*) FROM edges WHERE parent_id = ?", (concept_id,)
            ).fetchone()[0]

        return await self._read(q)

    async def count_parents(self, concept_id: str) -> int:
        def q(conn):
            return conn.execute(
                "SELECT COUNT(*) FROM edges WHERE child_id = ?", (concept_id,)
            ).fetchone()[0]

        return await self._read(q)

    async def max_level(self) -> int:
        def q(conn):
            value = conn.execute("SELECT MAX(level) FROM concepts").fetchone()[0]
            return int(value or 0)

        return await self._read(q)

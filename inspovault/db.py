import asyncio
import json
import logging
import os
import sqlite3

logger = logging.getLogger("InspoVault")

from .config import normalize_settings
from .constants import SCHEMA_VERSION
from .errors import StoreUnreachableError, StoreWriteError
from .paths import get_db_path
from .schema import SCHEMA_SQL
from .utils import fold

MAX_SQL_VARIABLES = 500


def _chunks(values, size):
    for start in range(0, len(values), size):
        yield values[start:start + size]


def translate_error(exc):
    """Map a sqlite3 error onto the library's store error taxonomy."""
    if isinstance(exc, (sqlite3.IntegrityError, sqlite3.DataError, sqlite3.ProgrammingError)):
        return StoreWriteError(str(exc))
    return StoreUnreachableError(str(exc))


class LibraryDB:
    """Row-level access to the five-table library schema.

    Statement helpers take an open connection so callers decide the
    transaction boundaries; ``execute``/``run`` wrap a single unit of work.
    """

    def __init__(self, db_path=None):
        self.db_path = db_path or get_db_path()
        parent = os.path.dirname(self.db_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        self._init_db()

    def connect(self):
        try:
            conn = sqlite3.connect(self.db_path)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
            conn.execute("PRAGMA busy_timeout = 5000")
        except sqlite3.Error as exc:
            raise StoreUnreachableError(f"cannot open {self.db_path}: {exc}") from exc
        conn.create_function("casefold", 1, fold, deterministic=True)
        return conn

    def _init_db(self):
        conn = self.connect()
        try:
            conn.executescript(SCHEMA_SQL)
            conn.execute(
                "INSERT OR REPLACE INTO meta(key,value) VALUES('schema_version', ?)",
                (SCHEMA_VERSION,),
            )
            conn.commit()
        except sqlite3.Error as exc:
            raise translate_error(exc) from exc
        finally:
            conn.close()

    def execute(self, fn, *args):
        """Run ``fn(conn, *args)`` on a fresh connection and commit."""
        conn = self.connect()
        try:
            result = fn(conn, *args)
            conn.commit()
            return result
        except sqlite3.Error as exc:
            conn.rollback()
            raise translate_error(exc) from exc
        finally:
            conn.close()

    async def run(self, fn, *args):
        return await asyncio.to_thread(self.execute, fn, *args)

    # ── items ──

    def insert_item(self, conn, item):
        conn.execute(
            "INSERT INTO items(id,title,notes,created_at,updated_at) VALUES(?,?,?,?,?)",
            (item["id"], item["title"], item["notes"], item["createdAt"], item["updatedAt"]),
        )

    def update_item(self, conn, item):
        cur = conn.execute(
            "UPDATE items SET title=?, notes=?, updated_at=? WHERE id=?",
            (item["title"], item["notes"], item["updatedAt"], item["id"]),
        )
        return cur.rowcount

    def delete_item(self, conn, item_id):
        # screenshots, urls and inspo_tags go with it (ON DELETE CASCADE)
        cur = conn.execute("DELETE FROM items WHERE id = ?", (item_id,))
        return cur.rowcount

    def insert_screenshots(self, conn, item_id, urls):
        conn.executemany(
            "INSERT INTO screenshots(inspo_id,url,display_order) VALUES(?,?,?)",
            [(item_id, url, index) for index, url in enumerate(urls)],
        )

    def delete_screenshots(self, conn, item_id):
        conn.execute("DELETE FROM screenshots WHERE inspo_id = ?", (item_id,))

    def insert_urls(self, conn, item_id, urls):
        conn.executemany(
            "INSERT INTO urls(inspo_id,url) VALUES(?,?)",
            [(item_id, url) for url in urls],
        )

    def delete_urls(self, conn, item_id):
        conn.execute("DELETE FROM urls WHERE inspo_id = ?", (item_id,))

    # ── tags ──

    def ensure_tag(self, conn, name):
        # Upsert against the unique name so two writers never mint two rows.
        conn.execute("INSERT INTO tags(name) VALUES(?) ON CONFLICT(name) DO NOTHING", (name,))
        row = conn.execute("SELECT id FROM tags WHERE name = ?", (name,)).fetchone()
        return int(row["id"])

    def link_tag(self, conn, item_id, tag_id):
        conn.execute("INSERT INTO inspo_tags(inspo_id,tag_id) VALUES(?,?)", (item_id, tag_id))

    def unlink_tags(self, conn, item_id):
        conn.execute("DELETE FROM inspo_tags WHERE inspo_id = ?", (item_id,))

    def item_updated_at(self, conn, item_id):
        row = conn.execute("SELECT updated_at FROM items WHERE id = ?", (item_id,)).fetchone()
        return row["updated_at"] if row else None

    def tag_ids_for_item(self, conn, item_id):
        rows = conn.execute("SELECT tag_id FROM inspo_tags WHERE inspo_id = ?", (item_id,)).fetchall()
        return [int(r["tag_id"]) for r in rows]

    def count_tag_refs(self, conn, tag_id):
        row = conn.execute("SELECT COUNT(*) AS total FROM inspo_tags WHERE tag_id = ?", (tag_id,)).fetchone()
        return int(row["total"])

    def delete_tag(self, conn, tag_id):
        # The reference check and the delete are one statement; a link
        # committed after a count must keep its tag.
        cur = conn.execute(
            "DELETE FROM tags WHERE id = ? AND NOT EXISTS (SELECT 1 FROM inspo_tags WHERE tag_id = ?)",
            (tag_id, tag_id),
        )
        return cur.rowcount

    def delete_orphan_tags(self, conn):
        cur = conn.execute(
            "DELETE FROM tags WHERE NOT EXISTS (SELECT 1 FROM inspo_tags it WHERE it.tag_id = tags.id)"
        )
        return cur.rowcount

    def select_tag_names(self, conn):
        rows = conn.execute(
            """
            SELECT DISTINCT t.name
            FROM tags t
            JOIN inspo_tags it ON it.tag_id = t.id
            ORDER BY t.name ASC
            """
        ).fetchall()
        return [r["name"] for r in rows]

    def select_all_tag_rows(self, conn):
        rows = conn.execute("SELECT id, name FROM tags ORDER BY name ASC").fetchall()
        return [{"id": r["id"], "name": r["name"]} for r in rows]

    # ── reads ──

    def select_items(self, conn, ids=None):
        if ids is None:
            filters = [("", [])]
        else:
            ids = list(dict.fromkeys(ids))
            if not ids:
                return []
            # one IN (...) per chunk keeps each statement under SQLite's variable limit
            filters = [
                (f"WHERE {{col}} IN ({','.join(['?'] * len(chunk))})", chunk)
                for chunk in _chunks(ids, MAX_SQL_VARIABLES)
            ]

        rows = []
        for where, params in filters:
            rows.extend(
                conn.execute(
                    f"SELECT rowid AS seq, id, title, notes, created_at, updated_at FROM items {where.format(col='id')}",
                    params,
                ).fetchall()
            )
        # created_at DESC, then insertion order DESC
        rows.sort(key=lambda r: (r["created_at"], r["seq"]), reverse=True)
        items = [self._row_to_item(r) for r in rows]
        by_id = {item["id"]: item for item in items}
        if not by_id:
            return []

        for where, params in filters:
            child_where = where.format(col="inspo_id")
            for r in conn.execute(
                f"SELECT inspo_id, url FROM screenshots {child_where} ORDER BY inspo_id, display_order ASC",
                params,
            ):
                by_id[r["inspo_id"]]["screenshots"].append(r["url"])
            for r in conn.execute(f"SELECT inspo_id, url FROM urls {child_where} ORDER BY rowid ASC", params):
                by_id[r["inspo_id"]]["urls"].append(r["url"])
            for r in conn.execute(
                f"""
                SELECT it.inspo_id, t.name
                FROM inspo_tags it
                JOIN tags t ON t.id = it.tag_id
                {where.format(col='it.inspo_id')}
                ORDER BY t.name ASC
                """,
                params,
            ):
                by_id[r["inspo_id"]]["tags"].append(r["name"])
        return items

    def search_item_ids(self, conn, term):
        """Ids of items whose title, notes, a tag name or a url contain ``term``.

        Comparison goes through the ``casefold`` SQL function registered in
        ``connect`` so it agrees with the in-memory predicate.
        """
        needle = fold(term)
        rows = conn.execute(
            """
            SELECT id AS inspo_id FROM items
            WHERE instr(casefold(title), ?) > 0 OR instr(casefold(COALESCE(notes, '')), ?) > 0
            UNION
            SELECT it.inspo_id FROM inspo_tags it
            JOIN tags t ON t.id = it.tag_id
            WHERE instr(casefold(t.name), ?) > 0
            UNION
            SELECT inspo_id FROM urls
            WHERE instr(casefold(url), ?) > 0
            """,
            (needle, needle, needle, needle),
        ).fetchall()
        return [r["inspo_id"] for r in rows]

    @staticmethod
    def _row_to_item(row):
        return {
            "id": row["id"],
            "title": row["title"],
            "screenshots": [],
            "urls": [],
            "notes": row["notes"] or "",
            "tags": [],
            "createdAt": row["created_at"],
            "updatedAt": row["updated_at"],
        }

    # ── settings ──

    def get_settings(self):
        conn = self.connect()
        try:
            row = conn.execute("SELECT value FROM meta WHERE key = 'settings'").fetchone()
            if row:
                try:
                    return normalize_settings(json.loads(row["value"]))
                except (json.JSONDecodeError, TypeError):
                    logger.warning("stored settings are not valid JSON, using defaults")
            return normalize_settings({})
        except sqlite3.Error as exc:
            raise translate_error(exc) from exc
        finally:
            conn.close()

    def set_settings(self, settings):
        settings = normalize_settings(settings)
        conn = self.connect()
        try:
            conn.execute(
                "INSERT OR REPLACE INTO meta(key, value) VALUES('settings', ?)",
                (json.dumps(settings, ensure_ascii=False),),
            )
            conn.commit()
            return settings
        except sqlite3.Error as exc:
            conn.rollback()
            raise translate_error(exc) from exc
        finally:
            conn.close()

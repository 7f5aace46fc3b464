import asyncio
import logging
import sqlite3
from functools import partial

logger = logging.getLogger("InspoVault")

from .config import WRITE_MODES
from .db import translate_error
from .errors import ItemNotFoundError, PartialWriteError
from .tag_gc import TagCollector
from .utils import advance_timestamp, normalize_item


class ItemRepository:
    """CRUD for denormalized items over the normalized library tables.

    Every write is a list of named steps (item row, screenshots, urls, one
    step per tag). In ``transactional`` mode the steps share one sqlite
    transaction. In ``best_effort`` mode each step commits on its own, a
    failing step does not stop the following ones, and the failures are
    raised together as ``PartialWriteError`` once every step has been tried.
    """

    def __init__(self, db, collector=None, write_mode="transactional"):
        self.db = db
        self.collector = collector or TagCollector(db)
        self.write_mode = write_mode

    @property
    def write_mode(self):
        return self._write_mode

    @write_mode.setter
    def write_mode(self, mode):
        if mode not in WRITE_MODES:
            raise ValueError(f"unknown write mode: {mode!r}")
        self._write_mode = mode

    # ── writes ──

    async def create(self, item):
        item = normalize_item(item)
        item_id = item["id"]
        steps = [("item", partial(self.db.insert_item, item=item))]
        if item["screenshots"]:
            steps.append(("screenshots", partial(self.db.insert_screenshots, item_id=item_id, urls=item["screenshots"])))
        if item["urls"]:
            steps.append(("urls", partial(self.db.insert_urls, item_id=item_id, urls=item["urls"])))
        steps.extend(self._tag_steps(item_id, item["tags"]))

        await asyncio.to_thread(self._write, item_id, steps)
        logger.info(
            "created item %s (%d screenshot(s), %d url(s), %d tag(s))",
            item_id,
            len(item["screenshots"]),
            len(item["urls"]),
            len(item["tags"]),
        )
        return item

    async def replace(self, item):
        """Full update: children and tag links are deleted and re-inserted."""
        item = normalize_item(item)
        item_id = item["id"]
        previous_updated_at = await self.db.run(self.db.item_updated_at, item_id)
        item["updatedAt"] = advance_timestamp(previous_updated_at)
        previous_tag_ids = await self.db.run(self.db.tag_ids_for_item, item_id)

        steps = [
            ("item", partial(self._update_row, item=item)),
            ("screenshots", partial(self._replace_screenshots, item_id=item_id, urls=item["screenshots"])),
            ("urls", partial(self._replace_urls, item_id=item_id, urls=item["urls"])),
            ("tags", partial(self.db.unlink_tags, item_id=item_id)),
        ]
        steps.extend(self._tag_steps(item_id, item["tags"]))

        try:
            await asyncio.to_thread(self._write, item_id, steps)
        except PartialWriteError:
            # links may already be gone; don't leave their tags orphaned
            await self.collector.collect(previous_tag_ids)
            raise
        await self.collector.collect(previous_tag_ids)
        logger.info("replaced item %s", item_id)
        # the payload may omit createdAt; answer with what was stored
        stored = await self.fetch_by_ids([item_id])
        return stored[0] if stored else item

    async def delete(self, item_id):
        tag_ids = await self.db.run(self.db.tag_ids_for_item, item_id)
        deleted = await self.db.run(self.db.delete_item, item_id)
        if not deleted:
            raise ItemNotFoundError(item_id)
        removed = await self.collector.collect(tag_ids)
        logger.info("deleted item %s, %d tag(s) collected", item_id, len(removed))
        return removed

    def _update_row(self, conn, item):
        if not self.db.update_item(conn, item):
            raise ItemNotFoundError(item["id"])

    def _replace_screenshots(self, conn, item_id, urls):
        self.db.delete_screenshots(conn, item_id)
        if urls:
            self.db.insert_screenshots(conn, item_id, urls)

    def _replace_urls(self, conn, item_id, urls):
        self.db.delete_urls(conn, item_id)
        if urls:
            self.db.insert_urls(conn, item_id, urls)

    def _tag_steps(self, item_id, names):
        return [(f"tag:{name}", partial(self._link_tag, item_id=item_id, name=name)) for name in names]

    def _link_tag(self, conn, item_id, name):
        tag_id = self.db.ensure_tag(conn, name)
        self.db.link_tag(conn, item_id, tag_id)

    def _write(self, item_id, steps):
        if self.write_mode == "best_effort":
            self._write_best_effort(item_id, steps)
            return

        conn = self.db.connect()
        step_name = None
        try:
            for step_name, step in steps:
                step(conn)
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            logger.error("write of item %s rolled back at step %s: %s", item_id, step_name, exc)
            raise translate_error(exc) from exc
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _write_best_effort(self, item_id, steps):
        failures = []
        for step_name, step in steps:
            conn = self.db.connect()
            try:
                step(conn)
                conn.commit()
            except sqlite3.Error as exc:
                conn.rollback()
                if step_name == "item":
                    logger.error("write of item %s failed: %s", item_id, exc)
                    raise translate_error(exc) from exc
                logger.error("item %s: step %s failed: %s", item_id, step_name, exc)
                failures.append((step_name, translate_error(exc)))
            except Exception:
                conn.rollback()
                raise
            finally:
                conn.close()
        if failures:
            raise PartialWriteError(item_id, failures)

    # ── reads ──

    async def fetch_all(self):
        items = await self.db.run(self.db.select_items)
        logger.debug("fetch_all items=%d", len(items))
        return items

    async def fetch_by_ids(self, ids):
        return await self.db.run(self.db.select_items, list(ids))

    async def search(self, term):
        ids = await self.db.run(self.db.search_item_ids, term)
        logger.debug("search term=%r ids=%d", term, len(ids))
        if not ids:
            return []
        return await self.fetch_by_ids(ids)

    async def list_tags(self):
        return await self.db.run(self.db.select_tag_names)

    async def tidy_tags(self):
        return await self.collector.tidy()

    # ── settings ──

    async def save_settings(self, settings):
        return await asyncio.to_thread(self.db.set_settings, settings)

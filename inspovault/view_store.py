import asyncio
import copy
import logging

logger = logging.getLogger("InspoVault")

from .config import normalize_settings
from .db import LibraryDB
from .query import QueryFederator, is_filter_active, search_term
from .repository import ItemRepository
from .seed import demo_items
from .tag_gc import TagCollector
from .utils import export_filename, export_text, parse_import, shuffle_items


class ViewStore:
    """Session state for one library user.

    ``items`` mirrors the store after the last successful load,
    ``filtered_items`` is always derived from ``items`` and
    ``active_filter``. Every successful mutation is followed by a full
    reload. ``busy`` is advisory only: concurrent intents are not serialized
    and whichever finishes last overwrites the view.
    """

    def __init__(self, repository, federator=None, settings=None, rng=None):
        self.repository = repository
        self.federator = federator or QueryFederator(repository)
        self.settings = normalize_settings(settings)
        self.rng = rng
        self.items = []
        self.tags = []
        self.filtered_items = []
        self.active_filter = {}
        self.busy = False
        self.closed = False

    def _presentation_order(self, items):
        if self.settings["shuffle"]:
            return shuffle_items(items, self.rng)
        return list(items)

    async def load(self):
        self.busy = True
        try:
            items = await self.repository.fetch_all()
            tags = await self.repository.list_tags()
            if is_filter_active(self.active_filter):
                filtered = await self.federator.resolve(items, self.active_filter)
            else:
                filtered = self._presentation_order(items)
        except Exception:
            logger.exception("loading items failed")
            raise
        finally:
            self.busy = False

        self.items = items
        self.tags = tags
        self.filtered_items = filtered
        logger.info("loaded %d item(s), %d tag(s)", len(items), len(tags))

    # ── filters ──

    def set_tag_filter(self, tag=None):
        self.active_filter = {**self.active_filter, "tag": tag or None}
        self.filtered_items = self.federator.resolve_local(self.items, self.active_filter)

    async def set_search_filter(self, term=None):
        next_filter = {**self.active_filter, "search": search_term(term)}
        self.busy = True
        try:
            filtered = await self.federator.resolve(self.items, next_filter)
        except Exception:
            logger.exception("search for %r failed", next_filter["search"])
            raise
        finally:
            self.busy = False
        self.active_filter = next_filter
        self.filtered_items = filtered

    def clear_filters(self):
        self.active_filter = {}
        self.filtered_items = self._presentation_order(self.items)

    # ── mutations ──

    async def _mutate(self, action, operation, *args):
        self.busy = True
        try:
            result = await operation(*args)
        except Exception:
            self.busy = False
            logger.error("%s failed", action, exc_info=True)
            raise
        await self.load()
        return result

    async def add_item(self, item):
        return await self._mutate("add item", self.repository.create, item)

    async def update_item(self, item):
        return await self._mutate("update item", self.repository.replace, item)

    async def remove_item(self, item_id):
        return await self._mutate("remove item", self.repository.delete, item_id)

    async def import_many(self, items):
        """Create ``items`` one after another, stopping at the first failure.

        Items created before the failure stay committed; the view is only
        reloaded when the whole batch went through.
        """
        items = list(items)
        self.busy = True
        imported = 0
        try:
            for item in items:
                await self.repository.create(item)
                imported += 1
        except Exception:
            self.busy = False
            logger.error("import stopped after %d of %d item(s)", imported, len(items), exc_info=True)
            raise
        await self.load()
        logger.info("imported %d item(s)", imported)
        return imported

    async def import_json(self, text):
        return await self.import_many(parse_import(text))

    async def load_demo_data(self):
        await self._mutate("load demo data", self._create_all, demo_items())

    async def _create_all(self, items):
        return await asyncio.gather(*(self.repository.create(item) for item in items))

    # ── export ──

    def export_all(self):
        return copy.deepcopy(self.items)

    def export_json(self):
        return export_filename(), export_text(self.export_all())

    # ── settings / lifecycle ──

    def apply_settings(self, settings):
        self.settings = normalize_settings(settings)
        self.repository.write_mode = self.settings["write_mode"]

    async def update_settings(self, changes):
        merged = normalize_settings({**self.settings, **(changes or {})})
        saved = await self.repository.save_settings(merged)
        self.apply_settings(saved)
        return self.settings

    async def tidy_tags(self):
        result = await self.repository.tidy_tags()
        self.tags = await self.repository.list_tags()
        return result

    def snapshot(self):
        return {
            "items": self.items,
            "filteredItems": self.filtered_items,
            "tags": self.tags,
            "activeFilter": dict(self.active_filter),
            "busy": self.busy,
        }

    def close(self):
        self.items = []
        self.tags = []
        self.filtered_items = []
        self.active_filter = {}
        self.busy = False
        self.closed = True
        logger.info("library session closed")


def open_library(db_path=None, rng=None):
    db = LibraryDB(db_path)
    settings = db.get_settings()
    collector = TagCollector(db)
    repository = ItemRepository(db, collector=collector, write_mode=settings["write_mode"])
    store = ViewStore(repository, QueryFederator(repository), settings=settings, rng=rng)
    logger.info("library opened: %s (write_mode=%s)", db.db_path, settings["write_mode"])
    return store

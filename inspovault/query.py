import logging

logger = logging.getLogger("InspoVault")

from .utils import fold


def search_term(value):
    if value is None:
        return ""
    return str(value).strip()


def is_filter_active(active_filter):
    active_filter = active_filter or {}
    return bool(active_filter.get("tag")) or bool(search_term(active_filter.get("search")))


def filter_by_tag(items, tag):
    """Exact, case-sensitive tag membership; keeps input order."""
    if not tag:
        return list(items)
    return [item for item in items if tag in (item.get("tags") or [])]


def matches_search(item, term):
    needle = fold(term)
    if needle in fold(item.get("title")):
        return True
    if needle in fold(item.get("notes")):
        return True
    if any(needle in fold(tag) for tag in item.get("tags") or []):
        return True
    return any(needle in fold(url) for url in item.get("urls") or [])


def search_items(items, term):
    term = search_term(term)
    if not term:
        return list(items)
    return [item for item in items if matches_search(item, term)]


class QueryFederator:
    """Composes the store-side substring search with the local tag filter.

    With an empty search term nothing leaves the process: ``items`` is
    narrowed by tag in place order. With a term the store resolves the
    matches (title, notes, tag names, urls) and the tag filter is intersected
    afterwards.
    """

    def __init__(self, repository):
        self.repository = repository

    async def resolve(self, items, active_filter=None):
        active_filter = active_filter or {}
        tag = active_filter.get("tag")
        term = search_term(active_filter.get("search"))
        if not term:
            return filter_by_tag(items, tag)

        results = await self.repository.search(term)
        resolved = filter_by_tag(results, tag)
        logger.debug("resolve term=%r tag=%r store=%d result=%d", term, tag, len(results), len(resolved))
        return resolved

    def resolve_local(self, items, active_filter=None):
        active_filter = active_filter or {}
        narrowed = filter_by_tag(items, active_filter.get("tag"))
        return search_items(narrowed, active_filter.get("search"))

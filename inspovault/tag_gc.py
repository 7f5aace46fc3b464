import logging

logger = logging.getLogger("InspoVault")


class TagCollector:
    """Reference-counting garbage collector for the global tag table.

    ``collect`` only looks at the candidate ids it is handed (the tags an item
    referenced before it was deleted or re-tagged) and must run after that
    write committed, so the counts reflect the post-write state. Running it
    again on the same candidates deletes nothing.
    """

    def __init__(self, db):
        self.db = db

    async def collect(self, candidate_tag_ids):
        candidates = sorted({int(t) for t in candidate_tag_ids or ()})
        if not candidates:
            return set()
        removed = await self.db.run(self._collect, candidates)
        if removed:
            logger.info("collected %d orphaned tag(s): %s", len(removed), sorted(removed))
        return removed

    def _collect(self, conn, candidates):
        removed = set()
        for tag_id in candidates:
            # cheap skip only; delete_tag re-checks references itself
            if self.db.count_tag_refs(conn, tag_id) > 0:
                continue
            if self.db.delete_tag(conn, tag_id):
                removed.add(tag_id)
        return removed

    async def tidy(self):
        """Drop every tag with no references; repairs orphans left by partial writes."""
        removed = await self.db.run(self.db.delete_orphan_tags)
        logger.info("tag tidy removed %d orphaned tag(s)", removed)
        return {"removed": removed}

SCHEMA_SQL = r"""
PRAGMA foreign_keys = ON;
PRAGMA journal_mode = WAL;

CREATE TABLE IF NOT EXISTS meta (
  key TEXT PRIMARY KEY,
  value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS items (
  id TEXT PRIMARY KEY,
  title TEXT NOT NULL,
  notes TEXT,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS screenshots (
  inspo_id TEXT NOT NULL,
  url TEXT NOT NULL,
  display_order INTEGER NOT NULL,
  FOREIGN KEY (inspo_id) REFERENCES items(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS urls (
  inspo_id TEXT NOT NULL,
  url TEXT NOT NULL,
  FOREIGN KEY (inspo_id) REFERENCES items(id) ON DELETE CASCADE
);

-- Tag names are case-sensitive; the unique constraint backs find-or-create.
CREATE TABLE IF NOT EXISTS tags (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL UNIQUE
);

CREATE TABLE IF NOT EXISTS inspo_tags (
  inspo_id TEXT NOT NULL,
  tag_id INTEGER NOT NULL,
  PRIMARY KEY (inspo_id, tag_id),
  FOREIGN KEY (inspo_id) REFERENCES items(id) ON DELETE CASCADE,
  FOREIGN KEY (tag_id) REFERENCES tags(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_items_created ON items(created_at);
CREATE INDEX IF NOT EXISTS idx_screenshots_item ON screenshots(inspo_id, display_order);
CREATE INDEX IF NOT EXISTS idx_urls_item ON urls(inspo_id);
CREATE INDEX IF NOT EXISTS idx_inspo_tags_tag ON inspo_tags(tag_id);
"""

import json
import random
import re
import uuid
from datetime import datetime, timedelta, timezone

from .errors import MalformedImportError


def now_iso():
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def _parse_iso(value):
    try:
        parsed = datetime.fromisoformat(str(value))
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def advance_timestamp(previous, now=None):
    """Update stamp strictly later than ``previous``, at millisecond precision.

    Two updates in the same second (or a clock behind a stored value) still
    move the stamp forward. Unparseable ``previous`` values are ignored.
    """
    stamp = now or datetime.now(timezone.utc)
    prev = _parse_iso(previous)
    if prev is not None and stamp <= prev:
        stamp = prev + timedelta(milliseconds=1)
    return stamp.astimezone(timezone.utc).isoformat(timespec="milliseconds")


def new_item_id():
    return str(uuid.uuid4())


_ws_re = re.compile(r"\s+")


def normalize_text(s):
    if s is None:
        return ""
    s = str(s).strip()
    s = _ws_re.sub(" ", s)
    return s


def fold(s):
    """Case-insensitive comparison key shared by local and store-side search."""
    return str(s or "").casefold()


def normalize_tags(tags):
    # Tag names are case-sensitive: "UI" and "ui" are two tags.
    out = []
    seen = set()
    for t in tags or []:
        t = normalize_text(t)
        if not t or t in seen:
            continue
        seen.add(t)
        out.append(t)
    return out


def _string_list(values):
    if isinstance(values, str):
        values = [values]
    if not isinstance(values, (list, tuple)):
        return []
    out = []
    for v in values:
        if v is None:
            continue
        v = str(v).strip()
        if v:
            out.append(v)
    return out


def normalize_item(payload, now=None):
    """Coerce a loosely-typed payload into the canonical item dict.

    Screenshot order is kept as given; urls keep duplicates. Only the title is
    mandatory.
    """
    if not isinstance(payload, dict):
        raise ValueError("item must be a JSON object")
    title = normalize_text(payload.get("title"))
    if not title:
        raise ValueError("item title is required")
    tags = payload.get("tags")
    if isinstance(tags, str):
        tags = [tags]
    elif tags is not None and not isinstance(tags, (list, tuple)):
        raise ValueError("item tags must be a list of strings")
    notes = payload.get("notes")
    now = now or now_iso()
    created_at = normalize_text(payload.get("createdAt")) or now
    updated_at = normalize_text(payload.get("updatedAt")) or created_at
    return {
        "id": normalize_text(payload.get("id")) or new_item_id(),
        "title": title,
        "screenshots": _string_list(payload.get("screenshots")),
        "urls": _string_list(payload.get("urls")),
        "notes": "" if notes is None else str(notes),
        "tags": normalize_tags(tags),
        "createdAt": created_at,
        "updatedAt": updated_at,
    }


def parse_import(text):
    try:
        data = json.loads(text or "")
    except json.JSONDecodeError as exc:
        raise MalformedImportError(f"Invalid JSON file: {exc.msg}") from exc
    if not isinstance(data, list):
        raise MalformedImportError("Import file must be a JSON array of items")
    for index, record in enumerate(data):
        if not isinstance(record, dict):
            raise MalformedImportError(f"Import record {index} is not an object")
        # reject the whole file before anything is written
        try:
            normalize_item(record)
        except ValueError as exc:
            raise MalformedImportError(f"Import record {index}: {exc}") from exc
    return data


def shuffle_items(items, rng=None):
    # random.shuffle is an in-place Fisher-Yates; never touch the caller's list.
    out = list(items)
    (rng or random).shuffle(out)
    return out


def export_filename(today=None):
    today = today or datetime.now(timezone.utc).date()
    return f"inspo-library-export-{today.isoformat()}.json"


def export_text(items):
    return json.dumps(items, ensure_ascii=False, indent=2)

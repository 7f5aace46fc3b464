WRITE_MODES = ("transactional", "best_effort")

DEFAULT_SETTINGS = {
    # transactional: one sqlite transaction per item write, all-or-nothing.
    # best_effort: every step commits on its own; failures are collected.
    "write_mode": "transactional",
    "shuffle": True,
    # Advisory for the UI; the view store itself never debounces.
    "search_debounce_ms": 300,
}


def _to_bool(value, default):
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        v = value.strip().lower()
        if v in {"1", "true", "yes", "on"}:
            return True
        if v in {"0", "false", "no", "off"}:
            return False
    return default


def normalize_settings(settings):
    merged = {**DEFAULT_SETTINGS, **(settings or {})}
    out = {}

    mode = str(merged.get("write_mode") or "").strip().lower().replace("-", "_")
    out["write_mode"] = mode if mode in WRITE_MODES else DEFAULT_SETTINGS["write_mode"]

    out["shuffle"] = _to_bool(merged.get("shuffle"), DEFAULT_SETTINGS["shuffle"])

    try:
        debounce = int(merged.get("search_debounce_ms"))
    except (TypeError, ValueError):
        debounce = DEFAULT_SETTINGS["search_debounce_ms"]
    out["search_debounce_ms"] = max(0, debounce)
    return out

import json
import logging

from aiohttp import web

from .constants import APP_NAME, SCHEMA_VERSION
from .errors import (
    ItemNotFoundError,
    MalformedImportError,
    PartialWriteError,
    StoreUnreachableError,
    StoreWriteError,
)
from .view_store import ViewStore, open_library

logger = logging.getLogger("InspoVault")

LIBRARY = web.AppKey("library", ViewStore)

routes = web.RouteTableDef()


def _json_response(obj, status=200):
    return web.Response(
        status=status,
        text=json.dumps(obj, ensure_ascii=False),
        content_type="application/json",
    )


def _bad_request(msg):
    return _json_response({"error": msg}, status=400)


def _error_response(exc):
    if isinstance(exc, ItemNotFoundError):
        return _json_response({"error": str(exc)}, status=404)
    if isinstance(exc, PartialWriteError):
        return _json_response(
            {
                "error": str(exc),
                "id": exc.item_id,
                "failed_steps": [step for step, _err in exc.failures],
            },
            status=409,
        )
    if isinstance(exc, StoreWriteError):
        return _json_response({"error": str(exc)}, status=409)
    if isinstance(exc, StoreUnreachableError):
        return _json_response({"error": str(exc)}, status=503)
    if isinstance(exc, ValueError):
        return _bad_request(str(exc))
    raise exc


async def _read_object(request):
    try:
        payload = await request.json()
    except Exception:
        return None, _bad_request("invalid JSON body")
    if not isinstance(payload, dict):
        return None, _bad_request("request body must be a JSON object")
    return payload, None


@routes.get("/inspo/health")
async def health(request):
    library = request.app[LIBRARY]
    return _json_response({"ok": True, "db_path": library.repository.db.db_path})


@routes.get("/inspo/items")
async def list_items(request):
    return _json_response(request.app[LIBRARY].snapshot())


@routes.post("/inspo/items")
async def create_item(request):
    library = request.app[LIBRARY]
    payload, error = await _read_object(request)
    if error:
        return error
    try:
        item = await library.add_item(payload)
    except (ValueError, KeyError, StoreWriteError, StoreUnreachableError, PartialWriteError) as exc:
        return _error_response(exc)
    return _json_response(item, status=201)


@routes.put("/inspo/items/{item_id}")
async def update_item(request):
    library = request.app[LIBRARY]
    payload, error = await _read_object(request)
    if error:
        return error
    payload["id"] = request.match_info["item_id"]
    try:
        item = await library.update_item(payload)
    except (ValueError, KeyError, StoreWriteError, StoreUnreachableError, PartialWriteError) as exc:
        return _error_response(exc)
    return _json_response(item)


@routes.delete("/inspo/items/{item_id}")
async def delete_item(request):
    library = request.app[LIBRARY]
    item_id = request.match_info["item_id"]
    try:
        removed = await library.remove_item(item_id)
    except (KeyError, StoreWriteError, StoreUnreachableError) as exc:
        return _error_response(exc)
    return _json_response({"deleted": item_id, "collected_tags": len(removed)})


@routes.get("/inspo/tags")
async def list_tags(request):
    library = request.app[LIBRARY]
    try:
        tags = await library.repository.list_tags()
    except StoreUnreachableError as exc:
        return _error_response(exc)
    return _json_response({"items": tags})


@routes.post("/inspo/tags/tidy")
async def tidy_tags(request):
    library = request.app[LIBRARY]
    try:
        result = await library.tidy_tags()
    except (StoreWriteError, StoreUnreachableError) as exc:
        return _error_response(exc)
    return _json_response(result)


@routes.post("/inspo/filter/tag")
async def filter_tag(request):
    library = request.app[LIBRARY]
    payload, error = await _read_object(request)
    if error:
        return error
    tag = payload.get("tag")
    if tag is not None and not isinstance(tag, str):
        return _bad_request("tag must be a string")
    library.set_tag_filter(tag)
    return _json_response(library.snapshot())


@routes.post("/inspo/filter/search")
async def filter_search(request):
    library = request.app[LIBRARY]
    payload, error = await _read_object(request)
    if error:
        return error
    term = payload.get("search")
    if term is not None and not isinstance(term, str):
        return _bad_request("search must be a string")
    try:
        await library.set_search_filter(term)
    except StoreUnreachableError as exc:
        return _error_response(exc)
    return _json_response(library.snapshot())


@routes.post("/inspo/filter/clear")
async def filter_clear(request):
    library = request.app[LIBRARY]
    library.clear_filters()
    return _json_response(library.snapshot())


@routes.get("/inspo/export")
async def export_library(request):
    filename, text = request.app[LIBRARY].export_json()
    return web.Response(
        text=text,
        content_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@routes.post("/inspo/import")
async def import_library(request):
    library = request.app[LIBRARY]
    content_type = (request.content_type or "").lower()

    if content_type.startswith("multipart/"):
        form = await request.post()
        upload = form.get("file")
        if not upload or not getattr(upload, "file", None):
            return _bad_request("missing import file")
        raw_bytes = upload.file.read()
    else:
        payload, error = await _read_object(request)
        if error:
            return error
        raw_bytes = str(payload.get("content", "") or "").encode("utf-8")

    try:
        text = raw_bytes.decode("utf-8-sig")
    except UnicodeDecodeError:
        return _bad_request("import file must be UTF-8 encoded")

    try:
        imported = await library.import_json(text)
    except MalformedImportError as exc:
        return _bad_request(str(exc))
    except (ValueError, StoreWriteError, StoreUnreachableError, PartialWriteError) as exc:
        return _error_response(exc)
    return _json_response({"imported": imported})


@routes.post("/inspo/demo")
async def load_demo(request):
    library = request.app[LIBRARY]
    try:
        await library.load_demo_data()
    except (StoreWriteError, StoreUnreachableError, PartialWriteError) as exc:
        return _error_response(exc)
    return _json_response(library.snapshot(), status=201)


@routes.get("/inspo/settings")
async def get_settings(request):
    return _json_response(request.app[LIBRARY].settings)


@routes.put("/inspo/settings")
async def put_settings(request):
    library = request.app[LIBRARY]
    payload, error = await _read_object(request)
    if error:
        return error
    try:
        settings = await library.update_settings(payload)
    except (StoreWriteError, StoreUnreachableError) as exc:
        return _error_response(exc)
    return _json_response(settings)


def create_app(db_path=None, rng=None):
    app = web.Application()
    app.add_routes(routes)

    async def _open_library(app):
        banner = f" {APP_NAME} "
        logger.info("=" * 30 + banner + "=" * 30)
        logger.info("Schema version: %s", SCHEMA_VERSION)
        library = open_library(db_path=db_path, rng=rng)
        await library.load()
        app[LIBRARY] = library

    async def _close_library(app):
        app[LIBRARY].close()

    app.on_startup.append(_open_library)
    app.on_cleanup.append(_close_library)
    return app

import logging
import os

from aiohttp import web

from .api import create_app


def main():
    logging.basicConfig(
        level=os.environ.get("INSPOVAULT_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    host = os.environ.get("INSPOVAULT_HOST", "127.0.0.1")
    try:
        port = int(os.environ.get("INSPOVAULT_PORT", "8188"))
    except ValueError:
        port = 8188
    web.run_app(create_app(), host=host, port=port)


if __name__ == "__main__":
    main()

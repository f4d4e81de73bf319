"""Serve the API with uvicorn: ``python -m storyrank`` or the ``storyrank`` script."""

import uvicorn

from .config import settings


def main() -> None:
    uvicorn.run("storyrank.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()

"""Entry point for running the Living Library API with Uvicorn."""
from __future__ import annotations

import os

import uvicorn


def main() -> None:
  port = int(os.getenv("LIBRARY_SERVER_PORT", "8000"))
  reload = os.getenv("UVICORN_RELOAD", "false").lower() == "true"
  uvicorn.run("living_library.main:app", host=os.getenv("LIBRARY_SERVER_HOST", "0.0.0.0"), port=port, reload=reload)


if __name__ == "__main__":
  main()

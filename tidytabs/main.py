"""FastAPI application entry point.

Run with: uv run uvicorn tidytabs.main:app --port 5002 --reload
"""

import os
import logging
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tidytabs.config import OUTPUT_DIR
from tidytabs.state import get_state, reset_state

_project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
load_dotenv(os.path.join(_project_root, ".env"))


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
_log_file = os.path.join(OUTPUT_DIR, "app.log")
os.makedirs(os.path.dirname(_log_file), exist_ok=True)
_handler = RotatingFileHandler(_log_file, maxBytes=2_000_000, backupCount=3)
_handler.setLevel(logging.DEBUG)
_handler.setFormatter(logging.Formatter(
    "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
))
logging.root.addHandler(_handler)
logging.root.setLevel(logging.DEBUG)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan (startup / shutdown hooks)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    state = get_state()
    # the timer does not survive a restart; the saved intent does
    await state.scheduler.restore()
    logger.info("TidyTabs starting up")
    yield
    logger.info("TidyTabs shutting down, cancelling background tasks")
    await state.task_manager.shutdown()
    reset_state()


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(
    title="TidyTabs",
    version="1.0.0",
    lifespan=lifespan,
)

# The extension and local dev servers talk to this backend cross-origin.
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=r"^(chrome-extension://.*|http://localhost:\d+)$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from tidytabs.routers import auto_organize, config_routes, organize, tabs  # noqa: E402

app.include_router(tabs.router)
app.include_router(organize.router)
app.include_router(auto_organize.router)
app.include_router(config_routes.router)


# ---------------------------------------------------------------------------
# CLI runner
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    import uvicorn

    print("\n  TidyTabs is running at http://localhost:5002")
    print(f"  Logging to {_log_file}\n")
    uvicorn.run("tidytabs.main:app", host="127.0.0.1", port=5002, reload=True)

"""Application entry point for Tasktrack (wxPython edition)."""
from __future__ import annotations

import importlib.util
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from tasktrack_app.tracker import __version__
from tasktrack_app.tracker.controllers import CONFIG_DIR, AppController, ConfigManager
from tasktrack_app.tracker.storage import Storage
from tasktrack_app.tracker.timers import ThreadTicker

if TYPE_CHECKING:  # pragma: no cover - hints only
    from tasktrack_app.tracker.views.main_window import TasktrackApp

LOG_DIR = CONFIG_DIR / "logs"
LOG_FILE = LOG_DIR / "app.log"


def ensure_wx_dependencies() -> None:
    """Exit early with a clear message when wxPython bindings are missing."""

    def _missing_message() -> str:
        return (
            "wxPython runtime is missing. Install it with `pip install tasktrack[gui]` (or "
            "`pip install wxPython`) and ensure system GTK3 or native widgets are available. "
            "On Debian/Ubuntu, you may need `libgtk-3-dev` and related dependencies.\n"
        )

    if importlib.util.find_spec("wx") is None:
        sys.stderr.write(_missing_message())
        sys.exit(1)


def configure_logging(level: str = "INFO") -> None:
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(LOG_FILE, maxBytes=1024 * 1024, backupCount=3)
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[handler, logging.StreamHandler()],
    )
    logging.info("Tasktrack v%s starting", __version__)


def build_controller(config_manager: ConfigManager) -> AppController:
    import wx

    storage = Storage(config_manager.config.data_file)
    ticker = ThreadTicker(interval=1.0, dispatch=wx.CallAfter)
    return AppController(storage, config_manager=config_manager, ticker=ticker)


def load_app() -> type["TasktrackApp"]:
    """Import the wx front end after the dependency check."""
    ensure_wx_dependencies()
    from tasktrack_app.tracker.views.main_window import TasktrackApp as _TasktrackApp

    return _TasktrackApp


def main() -> None:
    config_manager = ConfigManager()
    configure_logging(config_manager.config.log_level)
    app_class = load_app()
    controller = build_controller(config_manager)
    app = app_class(controller, config_manager)
    app.run()


if __name__ == "__main__":
    main()

import argparse
import datetime
import logging
import os
import threading
import webbrowser
from http import HTTPStatus
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any, Callable, Dict, Optional
from urllib.parse import unquote, urlparse

from planner_core import FileStorage, PlannerState, ViewMode, build_dashboard
from planner_html import render_page
from planner_settings import configure_logging, load_settings

logger = logging.getLogger(__name__)

# -------------------------------
# Optional native window (pywebview)
# -------------------------------

WEBVIEW_AVAILABLE = False
try:
    import webview  # pip install pywebview
    WEBVIEW_AVAILABLE = True
except ImportError:
    WEBVIEW_AVAILABLE = False

LOOPBACK = "127.0.0.1"
WINDOW_PREFIX = "/window/"


# -------------------------------
# Window controls
# -------------------------------

class WindowControls:
    """
    Maps the shell's window commands onto a window object exposing
    minimize(), maximize(), unmaximize(), is_maximized() and close().
    """

    def __init__(self, window: Any):
        self.window = window
        self.commands: Dict[str, Callable[[], None]] = {
            "window-min": self.minimize,
            "window-max": self.toggle_maximize,
            "window-close": self.close,
        }

    def minimize(self) -> None:
        self.window.minimize()

    def toggle_maximize(self) -> None:
        if self.window.is_maximized():
            self.window.unmaximize()
        else:
            self.window.maximize()

    def close(self) -> None:
        self.window.close()

    def dispatch(self, command: str) -> bool:
        handler = self.commands.get(command)
        if handler is None:
            logger.warning("Unknown window command %r", command)
            return False
        handler()
        return True


class WebviewWindow:
    """Gives a pywebview window the interface WindowControls expects."""

    def __init__(self, window: Any = None):
        self.window = window
        self._maximized = False

    def minimize(self) -> None:
        self.window.minimize()

    def maximize(self) -> None:
        self.window.maximize()
        self._maximized = True

    def unmaximize(self) -> None:
        self.window.restore()
        self._maximized = False

    def is_maximized(self) -> bool:
        return self._maximized

    def close(self) -> None:
        self.window.destroy()


# -------------------------------
# Loopback asset server
# -------------------------------

def resolve_asset(root: Path, url_path: str) -> Optional[Path]:
    """Map a request path onto the asset root. None when it would escape the root."""
    root = Path(root).resolve()
    rel = unquote(urlparse(url_path).path).lstrip("/")
    if not rel:
        rel = "index.html"
    target = (root / rel).resolve()
    try:
        target.relative_to(root)
    except ValueError:
        return None
    if target.is_dir():
        target = target / "index.html"
    return target


class AssetRequestHandler(SimpleHTTPRequestHandler):
    window_controls: Optional[WindowControls] = None

    def __init__(self, *args, directory: Optional[str] = None, **kwargs):
        self.asset_root = Path(directory or os.getcwd()).resolve()
        super().__init__(*args, directory=str(self.asset_root), **kwargs)

    def send_head(self):
        target = resolve_asset(self.asset_root, self.path)
        if target is None:
            self.send_error(HTTPStatus.FORBIDDEN, "Path outside asset root")
            return None
        if not target.is_file():
            self.send_error(HTTPStatus.NOT_FOUND, "File not found")
            return None
        return super().send_head()

    def translate_path(self, path: str) -> str:
        target = resolve_asset(self.asset_root, path)
        return str(target if target is not None else self.asset_root)

    def do_POST(self):
        path = urlparse(self.path).path
        controls = self.window_controls
        if not path.startswith(WINDOW_PREFIX) or controls is None:
            self.send_error(HTTPStatus.NOT_FOUND, "No such command")
            return
        if not controls.dispatch(path[len(WINDOW_PREFIX):]):
            self.send_error(HTTPStatus.BAD_REQUEST, "Unknown window command")
            return
        self.send_response(HTTPStatus.NO_CONTENT)
        self.end_headers()

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)


class AssetServer:
    def __init__(self, root: Path, port: int = 0, window_controls: Optional[WindowControls] = None):
        self.root = Path(root).resolve()
        handler = type("BoundAssetHandler", (AssetRequestHandler,), {"window_controls": window_controls})
        root_str = str(self.root)

        def _factory(*args, **kwargs):
            return handler(*args, directory=root_str, **kwargs)

        self.httpd = ThreadingHTTPServer((LOOPBACK, port), _factory)
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.httpd.server_address[1]

    @property
    def url(self) -> str:
        return f"http://{LOOPBACK}:{self.port}/"

    def start(self) -> "AssetServer":
        self._thread = threading.Thread(target=self.httpd.serve_forever, name="asset-server", daemon=True)
        self._thread.start()
        logger.info("Serving %s at %s", self.root, self.url)
        return self

    def stop(self) -> None:
        self.httpd.shutdown()
        self.httpd.server_close()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None


# -------------------------------
# Snapshot + CLI
# -------------------------------

def export_snapshot(
    state: PlannerState,
    root: Path,
    mode: ViewMode = ViewMode.WEEK,
    now: Optional[datetime.datetime] = None,
    window_bar: bool = False,
) -> Path:
    root = Path(root)
    root.mkdir(parents=True, exist_ok=True)
    model = build_dashboard(state.data, mode, now or datetime.datetime.now())
    target = root / "index.html"
    target.write_text(render_page(model, window_bar=window_bar), encoding="utf-8")
    return target


def run_window(root: Path, port: int = 0) -> int:
    native = WebviewWindow()
    server = AssetServer(root, port=port, window_controls=WindowControls(native)).start()
    native.window = webview.create_window("Student Planner", server.url, frameless=True)
    try:
        webview.start()
    finally:
        server.stop()
    return 0


def main(argv=None) -> int:
    settings = load_settings()
    parser = argparse.ArgumentParser(description="Serve a snapshot of the student planner on localhost.")
    parser.add_argument("--data", default=settings.data_path, help="planner JSON file")
    parser.add_argument("--assets", default="site", help="asset root to serve")
    parser.add_argument("--port", type=int, default=0)
    parser.add_argument("--view", default=settings.default_view, choices=[m.value for m in ViewMode])
    parser.add_argument("--no-browser", action="store_true")
    parser.add_argument(
        "--window",
        action="store_true",
        help="open in a native frameless window (needs pywebview); enables the POST /window/<command> controls",
    )
    args = parser.parse_args(argv)
    if args.window and not WEBVIEW_AVAILABLE:
        parser.error("--window needs pywebview: pip install pywebview")

    configure_logging(settings.log_level)

    state = PlannerState(FileStorage(args.data))
    state.load()
    export_snapshot(state, Path(args.assets), ViewMode(args.view), window_bar=args.window)

    if args.window:
        return run_window(Path(args.assets), args.port)

    server = AssetServer(Path(args.assets), port=args.port).start()
    if not args.no_browser:
        webbrowser.open(server.url)
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        pass
    finally:
        server.stop()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

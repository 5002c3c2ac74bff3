"""Tests for the loopback asset server, window controls and snapshot export."""

import http.client

import pytest

import desktop_shell
from conftest import MONDAY, at
from desktop_shell import (
    AssetServer,
    WebviewWindow,
    WindowControls,
    export_snapshot,
    main,
    resolve_asset,
    run_window,
)
from planner_core import EntityKind, ViewMode


class FakeWindow:
    def __init__(self):
        self.maximized = False
        self.calls = []

    def minimize(self):
        self.calls.append("minimize")

    def maximize(self):
        self.maximized = True
        self.calls.append("maximize")

    def unmaximize(self):
        self.maximized = False
        self.calls.append("unmaximize")

    def is_maximized(self):
        return self.maximized

    def close(self):
        self.calls.append("close")


@pytest.fixture
def site(tmp_path):
    root = tmp_path / "site"
    (root / "css").mkdir(parents=True)
    (root / "index.html").write_text("<h1>planner</h1>", encoding="utf-8")
    (root / "css" / "index.html").write_text("css index", encoding="utf-8")
    (root / "css" / "app.css").write_text("body{}", encoding="utf-8")
    (tmp_path / "secret.txt").write_text("top secret", encoding="utf-8")
    return root


def _request(server, method, path):
    conn = http.client.HTTPConnection("127.0.0.1", server.port, timeout=5)
    try:
        conn.request(method, path)
        resp = conn.getresponse()
        return resp.status, resp.read()
    finally:
        conn.close()


class TestResolveAsset:
    """Tests for path containment."""

    def test_file_inside_root(self, site) -> None:
        assert resolve_asset(site, "/css/app.css") == (site / "css" / "app.css").resolve()

    def test_root_is_index(self, site) -> None:
        assert resolve_asset(site, "/") == (site / "index.html").resolve()

    def test_directory_maps_to_index(self, site) -> None:
        assert resolve_asset(site, "/css/") == (site / "css" / "index.html").resolve()

    def test_query_string_ignored(self, site) -> None:
        assert resolve_asset(site, "/css/app.css?v=2") == (site / "css" / "app.css").resolve()

    @pytest.mark.parametrize("path", ["/../secret.txt", "/css/../../secret.txt", "/%2e%2e/secret.txt"])
    def test_escape_rejected(self, site, path) -> None:
        assert resolve_asset(site, path) is None


class TestWindowControls:
    """Tests for the window command table."""

    def test_maximize_toggles(self) -> None:
        window = FakeWindow()
        controls = WindowControls(window)

        assert controls.dispatch("window-max") is True
        assert window.maximized is True
        controls.dispatch("window-max")
        assert window.maximized is False

    def test_min_and_close(self) -> None:
        window = FakeWindow()
        controls = WindowControls(window)

        controls.dispatch("window-min")
        controls.dispatch("window-close")

        assert window.calls == ["minimize", "close"]

    def test_unknown_command(self) -> None:
        window = FakeWindow()

        assert WindowControls(window).dispatch("window-spin") is False
        assert window.calls == []


class TestAssetServer:
    """Tests against a live server on an ephemeral loopback port."""

    def test_serves_files(self, site) -> None:
        server = AssetServer(site).start()
        try:
            status, body = _request(server, "GET", "/")
            assert status == 200
            assert body == b"<h1>planner</h1>"
            assert server.url.startswith("http://127.0.0.1:")
        finally:
            server.stop()

    def test_traversal_forbidden(self, site) -> None:
        server = AssetServer(site).start()
        try:
            status, body = _request(server, "GET", "/../secret.txt")
            assert status == 403
            assert b"top secret" not in body
        finally:
            server.stop()

    def test_missing_file(self, site) -> None:
        server = AssetServer(site).start()
        try:
            status, _ = _request(server, "GET", "/nope.js")
            assert status == 404
        finally:
            server.stop()

    def test_window_command_over_http(self, site) -> None:
        window = FakeWindow()
        server = AssetServer(site, window_controls=WindowControls(window)).start()
        try:
            assert _request(server, "POST", "/window/window-max")[0] == 204
            assert window.maximized is True
            assert _request(server, "POST", "/window/window-spin")[0] == 400
        finally:
            server.stop()

    def test_window_command_without_window(self, site) -> None:
        server = AssetServer(site).start()
        try:
            assert _request(server, "POST", "/window/window-max")[0] == 404
        finally:
            server.stop()


def test_export_snapshot(state, tmp_path) -> None:
    """The snapshot is a full page written to the asset root."""
    state.add(EntityKind.COURSE, {"title": "Chemistry 101", "days": ["Monday"], "start": "09:00", "end": "10:00"})

    target = export_snapshot(state, tmp_path / "out", ViewMode.DAY, now=at(MONDAY, 8, 0))

    assert target.name == "index.html"
    html = target.read_text(encoding="utf-8")
    assert "Chemistry 101" in html
    assert "Starts at 09:00" in html


class FakeWebview:
    """Stands in for the pywebview module; start() drives the window over HTTP."""

    def __init__(self):
        self.window = None
        self.url = None
        self.statuses = []

    def create_window(self, title, url, frameless=False):
        self.url = url
        self.window = FakeNativeWindow()
        return self.window

    def start(self):
        conn = http.client.HTTPConnection("127.0.0.1", int(self.url.rsplit(":", 1)[1].rstrip("/")), timeout=5)
        try:
            for cmd in ("window-max", "window-max", "window-close"):
                conn.request("POST", f"/window/{cmd}")
                resp = conn.getresponse()
                resp.read()
                self.statuses.append(resp.status)
        finally:
            conn.close()


class FakeNativeWindow:
    def __init__(self):
        self.calls = []

    def minimize(self):
        self.calls.append("minimize")

    def maximize(self):
        self.calls.append("maximize")

    def restore(self):
        self.calls.append("restore")

    def destroy(self):
        self.calls.append("destroy")


class TestNativeWindow:
    """Tests for the pywebview-backed window."""

    def test_adapter_tracks_maximized(self) -> None:
        native = FakeNativeWindow()
        controls = WindowControls(WebviewWindow(native))

        controls.dispatch("window-max")
        controls.dispatch("window-max")
        controls.dispatch("window-min")
        controls.dispatch("window-close")

        assert native.calls == ["maximize", "restore", "minimize", "destroy"]

    def test_run_window_attaches_controls(self, site, monkeypatch) -> None:
        """Buttons in the native window reach it through the asset server."""
        fake = FakeWebview()
        monkeypatch.setattr(desktop_shell, "webview", fake, raising=False)

        assert run_window(site) == 0

        assert fake.statuses == [204, 204, 204]
        assert fake.window.calls == ["maximize", "restore", "destroy"]
        assert fake.url.startswith("http://127.0.0.1:")

    def test_window_flag_needs_pywebview(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setattr(desktop_shell, "WEBVIEW_AVAILABLE", False)

        with pytest.raises(SystemExit) as exc:
            main(["--data", str(tmp_path / "db.json"), "--assets", str(tmp_path / "site"), "--window"])

        assert exc.value.code == 2

    def test_snapshot_with_window_bar(self, state, tmp_path) -> None:
        target = export_snapshot(state, tmp_path / "out", now=at(MONDAY, 8, 0), window_bar=True)

        html = target.read_text(encoding="utf-8")
        assert 'id="window-bar"' in html
        assert "/window/window-close" in html

import asyncio
import io
from pathlib import Path

from quill.build import BuildError
from quill.server import DevServer, _ChangeHandler, _ReloadHandler


class DummyEvent:
    def __init__(self, path, is_directory=False):
        self.src_path = path
        self.is_directory = is_directory


def make_handler(root: Path, path: str):
    """Build a request handler without a socket, recording status codes."""
    handler = _ReloadHandler.__new__(_ReloadHandler)
    handler.path = path
    handler.directory = str(root)
    handler.command = "GET"
    handler.request_version = "HTTP/1.1"
    handler.server_version = ""
    handler.sys_version = ""
    handler._headers_buffer = []
    handler.headers = {}
    handler.rfile = io.BytesIO(b"")
    handler.wfile = io.BytesIO()
    handler.codes = []
    handler.send_response = lambda code, message=None: handler.codes.append(code)
    handler.send_header = lambda *args, **kwargs: None
    handler.end_headers = lambda: None
    handler.send_error = lambda code, message=None: handler.codes.append(("error", code))
    return handler


def test_change_handler_skips_output_staging_and_git(tmp_path):
    server = DevServer(tmp_path)
    server.output_dir.mkdir()
    calls = []
    server.rebuild = lambda include_drafts: calls.append(include_drafts)
    handler = _ChangeHandler(server, include_drafts=True)

    handler.on_any_event(DummyEvent(str(server.output_dir / "index.html")))
    handler.on_any_event(DummyEvent(str(server._staging_dir / "index.html")))
    handler.on_any_event(DummyEvent(str(tmp_path / ".git" / "HEAD")))
    handler.on_any_event(DummyEvent(str(tmp_path / "site"), is_directory=True))
    assert calls == []

    handler.on_any_event(DummyEvent(str(tmp_path / "site" / "index.md")))
    handler.on_any_event(DummyEvent(str(tmp_path / "quill.yaml").encode()))
    assert calls == [True, True]


def test_ports_follow_config_and_overrides(tmp_path):
    assert DevServer(tmp_path).http_port == 4000
    assert DevServer(tmp_path).ws_port == 4001

    server = DevServer(tmp_path, http_port=5055)
    assert server.ws_port == 5056

    explicit = DevServer(tmp_path, http_port=5055, ws_port=6000)
    assert explicit.ws_port == 6000
    assert ":6000" in explicit._reload_script

    (tmp_path / "quill.yaml").write_text("port: 8000\nws_port: 9000\noutput_dir: public\n", encoding="utf-8")
    configured = DevServer(tmp_path)
    assert (configured.http_port, configured.ws_port) == (8000, 9000)
    assert configured.output_dir == tmp_path / "public"
    assert configured._staging_dir == tmp_path / "public.staging"


def test_rebuild_builds_into_staging_then_swaps(monkeypatch, tmp_path):
    server = DevServer(tmp_path)
    server.output_dir.mkdir()
    (server.output_dir / "stale.html").write_text("old", encoding="utf-8")
    server._post_build_delay = 0.01
    calls = []

    def fake_build(root, include_drafts=False, root_url=None, clean_output=True, output_dir_override=None):
        calls.append((root_url, clean_output, output_dir_override))
        (output_dir_override / "index.html").write_text("new", encoding="utf-8")

    monkeypatch.setattr("quill.server.build_site", fake_build)
    server._broadcast_reload = lambda: calls.append("reload")
    slept = []
    monkeypatch.setattr("quill.server.time.sleep", lambda secs: slept.append(secs))

    assert server.rebuild(include_drafts=False) is True
    assert calls == [("http://localhost:4000", True, server._staging_dir), "reload"]
    assert slept == [0.01]
    assert (server.output_dir / "index.html").read_text(encoding="utf-8") == "new"
    assert not (server.output_dir / "stale.html").exists()
    assert not server._staging_dir.exists()


def test_rebuild_skips_while_busy_or_unchanged(monkeypatch, tmp_path):
    server = DevServer(tmp_path)
    server._post_build_delay = 0
    server._debounce_seconds = 0.0
    calls = []
    monkeypatch.setattr("quill.server.build_site", lambda *args, **kwargs: calls.append("built"))
    server._broadcast_reload = lambda: calls.append("reloaded")

    signatures = [("a",), ("a",), ("b",)]
    server._compute_signature = lambda: signatures.pop(0)

    assert server.rebuild(include_drafts=False) is True
    server._rebuilding = True
    assert server.rebuild(include_drafts=False) is False
    server._rebuilding = False
    assert server.rebuild(include_drafts=False) is False
    assert server.rebuild(include_drafts=False) is True
    assert calls == ["built", "reloaded", "built", "reloaded"]


def test_rebuild_keeps_previous_output_on_build_error(monkeypatch, tmp_path, capsys):
    server = DevServer(tmp_path)
    server.output_dir.mkdir()
    (server.output_dir / "index.html").write_text("previous", encoding="utf-8")
    server._compute_signature = lambda: ("broken",)

    def failing_build(*args, **kwargs):
        raise BuildError(tmp_path / "site" / "index.md", "Template syntax error: unexpected '}'")

    monkeypatch.setattr("quill.server.build_site", failing_build)
    reloads = []
    server._broadcast_reload = lambda: reloads.append(True)

    assert server.rebuild(include_drafts=False) is False
    assert reloads == []
    assert (server.output_dir / "index.html").read_text(encoding="utf-8") == "previous"
    assert "Build failed" in capsys.readouterr().err
    assert server._last_signature == ("broken",)


def test_compute_signature(tmp_path):
    server = DevServer(tmp_path)
    assert server._compute_signature() is None

    (tmp_path / "site" / "nested").mkdir(parents=True)
    (tmp_path / "assets").mkdir()
    (tmp_path / "site" / "index.md").write_text("hi", encoding="utf-8")
    (tmp_path / "quill.yaml").write_text("port: 4000\n", encoding="utf-8")
    (tmp_path / "assets" / "missing.txt").symlink_to(tmp_path / "nope.txt")

    names = [entry[0] for entry in server._compute_signature()]
    assert str(Path("site") / "index.md") in names
    assert "quill.yaml" in names


def test_prepare_staging_dir_removes_existing(tmp_path):
    server = DevServer(tmp_path)
    server._staging_dir.mkdir()
    (server._staging_dir / "old.html").write_text("old", encoding="utf-8")

    staging = server._prepare_staging_dir()
    assert staging == server._staging_dir
    assert staging.is_dir()
    assert list(staging.iterdir()) == []


def test_ws_start_failure_is_logged(monkeypatch, tmp_path, caplog):
    server = DevServer(tmp_path, http_port=5055, ws_port=5057)

    async def fake_run():
        raise OSError("bind error")

    monkeypatch.setattr(server, "_run_ws_server", fake_run)
    server._start_ws()
    assert "failed to start" in caplog.text
    assert "5057" in caplog.text


def test_async_broadcast_drops_stale_clients(tmp_path):
    server = DevServer(tmp_path)

    class GoodWS:
        def __init__(self):
            self.messages = []

        async def send(self, msg):
            self.messages.append(msg)

    class BadWS:
        async def send(self, msg):
            raise ConnectionError("gone")

    good, bad = GoodWS(), BadWS()
    server._ws_clients = {good, bad}
    asyncio.run(server._async_broadcast('{"type": "reload"}'))
    assert good.messages == ['{"type": "reload"}']
    assert server._ws_clients == {good}


def test_broadcast_reload_schedules_on_loop(monkeypatch, tmp_path):
    server = DevServer(tmp_path)
    seen = {}

    def fake_runner(coro, loop):
        seen["loop"] = loop
        coro.close()

    monkeypatch.setattr("quill.server.asyncio.run_coroutine_threadsafe", fake_runner)
    server._broadcast_reload()
    assert seen["loop"] is server._loop


def test_stop_and_ws_handler(tmp_path):
    server = DevServer(tmp_path)
    server.stop()

    class DummyObserver:
        def __init__(self):
            self.calls = []

        def stop(self):
            self.calls.append("stop")

        def join(self):
            self.calls.append("join")

    server._observer = DummyObserver()
    server.stop()
    assert server._observer.calls == ["stop", "join"]

    class DummyWS:
        closed = False

        async def wait_closed(self):
            self.closed = True

    ws = DummyWS()
    asyncio.run(server._ws_handler(ws))
    assert ws.closed
    assert ws not in server._ws_clients


def test_start_watcher_schedules_existing_folders(monkeypatch, tmp_path):
    (tmp_path / "site").mkdir()
    (tmp_path / "data").mkdir()
    scheduled = []

    class DummyObserver:
        def schedule(self, handler, path, recursive):
            scheduled.append((path, recursive))

        def start(self):
            scheduled.append("started")

    monkeypatch.setattr("quill.server.Observer", DummyObserver)
    DevServer(tmp_path)._start_watcher(include_drafts=False)
    assert scheduled == [
        (str(tmp_path / "site"), True),
        (str(tmp_path / "data"), True),
        (str(tmp_path), False),
        "started",
    ]


def test_html_responses_get_reload_script(tmp_path):
    (tmp_path / "index.html").write_text("<html><body>Hello</body></html>", encoding="utf-8")
    (tmp_path / "plain.html").write_text("<html>No body</html>", encoding="utf-8")

    handler = make_handler(tmp_path, "/index.html")
    assert handler.send_head() is None
    body = handler.wfile.getvalue().decode()
    assert handler.codes == [200]
    assert body.index("WebSocket") < body.index("</body>")

    handler = make_handler(tmp_path, "/plain.html")
    handler.send_head()
    assert handler.wfile.getvalue().decode().rstrip().endswith("</script>")


def test_directory_index_is_served(tmp_path):
    (tmp_path / "posts").mkdir()
    (tmp_path / "posts" / "index.html").write_text("<body>index</body>", encoding="utf-8")
    handler = make_handler(tmp_path, "/posts/")
    assert handler.send_head() is None
    assert handler.codes == [200]
    assert b"index" in handler.wfile.getvalue()


def test_static_files_fall_through(tmp_path):
    (tmp_path / "style.css").write_text("body{}", encoding="utf-8")
    handler = make_handler(tmp_path, "/style.css")
    result = handler.send_head()
    assert result is not None
    result.close()


def test_missing_paths_and_listings_are_404(tmp_path):
    (tmp_path / "drafts").mkdir()
    (tmp_path / "drafts" / "note.txt").write_text("hi", encoding="utf-8")

    for path in ("/missing.html", "/drafts/"):
        handler = make_handler(tmp_path, path)
        assert handler.send_head() is None
        assert handler.codes == [("error", 404)]


def test_custom_404_page(tmp_path):
    (tmp_path / "404").mkdir()
    (tmp_path / "404" / "index.html").write_text("<body>oops</body>", encoding="utf-8")
    handler = make_handler(tmp_path, "/missing/")
    handler.send_head()
    assert handler.codes == [404]
    body = handler.wfile.getvalue().decode()
    assert "oops" in body
    assert "WebSocket" in body

    (tmp_path / "404.html").write_text("<body>flat</body>", encoding="utf-8")
    handler = make_handler(tmp_path, "/missing/")
    handler.send_head()
    assert b"flat" in handler.wfile.getvalue()

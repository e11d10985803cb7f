"""Tests for the local file server wrapper."""

import functools
import http.server

import serve


class FakeServer:
    instances = []

    def __init__(self, address, handler):
        self.address = address
        self.handler = handler
        FakeServer.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def serve_forever(self):
        raise KeyboardInterrupt


class TestServeSite:
    def test_handler_serves_given_directory(self, tmp_path):
        handler = serve.make_handler(tmp_path)
        assert isinstance(handler, functools.partial)
        assert handler.func is http.server.SimpleHTTPRequestHandler
        assert handler.keywords == {"directory": str(tmp_path)}

    def test_missing_directory(self, tmp_path, caplog):
        assert serve.serve_site(tmp_path / "nope", port=0, open_browser=False) is False
        assert "doesn't exist" in caplog.text

    def test_serves_until_interrupted(self, tmp_path, monkeypatch, capsys):
        opened = []
        FakeServer.instances.clear()
        monkeypatch.setattr(serve.socketserver, "TCPServer", FakeServer)
        monkeypatch.setattr(serve.webbrowser, "open", opened.append)

        assert serve.serve_site(tmp_path, port=8123) is True
        assert FakeServer.instances[0].address == ("localhost", 8123)
        assert opened == ["http://localhost:8123"]
        assert "Server stopped." in capsys.readouterr().out

    def test_main_exit_status(self, tmp_path, monkeypatch):
        monkeypatch.setattr(serve.socketserver, "TCPServer", FakeServer)
        assert serve.main(["9000", "--dir", str(tmp_path), "--no-browser"]) == 0
        assert serve.main(["--dir", str(tmp_path / "missing")]) == 1

    def test_main_uses_the_build_logging_setup(self, tmp_path, monkeypatch):
        import build_static_site

        calls = []
        monkeypatch.setattr(build_static_site, "configure_logging", lambda verbose=False: calls.append(verbose))
        monkeypatch.setattr(serve.socketserver, "TCPServer", FakeServer)
        serve.main(["--dir", str(tmp_path), "--no-browser"])
        assert calls == [False]

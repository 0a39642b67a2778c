import pytest

import app as blog


@pytest.fixture
def pages_dir(tmp_path):
    pages = tmp_path / "pages"
    pages.mkdir()
    (pages / "Hello.txt").write_bytes(b"Hello, world.\n")
    (pages / "Notes2024.txt").write_bytes("café notes".encode("utf-8"))
    return pages


@pytest.fixture
def assets_dir(tmp_path):
    assets = tmp_path / "assets"
    (assets / "js").mkdir(parents=True)
    (assets / "css").mkdir()
    (assets / "js" / "site.js").write_text("console.log('hi');")
    (assets / "css" / "style.css").write_text("body { color: red; }")
    (assets / "secret.txt").write_text("do not serve")
    return assets


@pytest.fixture
def app(pages_dir, assets_dir, monkeypatch):
    monkeypatch.setitem(blog.app.config, "PAGES_DIR", pages_dir)
    monkeypatch.setitem(blog.app.config, "ASSETS_DIR", assets_dir)
    monkeypatch.setitem(blog.app.config, "TESTING", True)
    return blog.app


@pytest.fixture
def client(app):
    return app.test_client()

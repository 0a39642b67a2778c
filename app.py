import enum
import logging
import os
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, NamedTuple

from flask import (
    Flask,
    abort,
    current_app,
    redirect,
    render_template,
    request,
    send_from_directory,
)
from flask.logging import default_handler
from jinja2 import TemplateError
from werkzeug.local import LocalProxy

BASE_DIR = Path(__file__).resolve().parent
TEMPLATES_DIR = BASE_DIR / "templates"
PAGES_DIR = Path(os.getenv("BLOG_PAGES_DIR", str(BASE_DIR / "pages")))
ASSETS_DIR = Path(os.getenv("BLOG_ASSETS_DIR", str(BASE_DIR)))

PAGE_SUFFIX = ".txt"
TEMPLATE_SUFFIX = ".html"
VIEWS = ("index", "view", "notfound")

TITLE_PATTERN = re.compile(r"[A-Za-z0-9]+")

app = Flask(__name__, template_folder=str(TEMPLATES_DIR), static_folder=None)
app.config.update(PAGES_DIR=PAGES_DIR, ASSETS_DIR=ASSETS_DIR)

access_log = logging.getLogger("textblog.access")


class BlogError(Exception):
    """Base class for errors raised while serving pages."""


class NotFoundError(BlogError):
    def __init__(self, title: str, cause: OSError):
        super().__init__(f"{title}: {cause}")
        self.title = title
        self.cause = cause


class StorageError(BlogError):
    pass


class RenderError(BlogError):
    pass


@dataclass(frozen=True)
class Page:
    title: str
    body: bytes = b""
    # Reserved permalink slot, never populated.
    perma: str = ""

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


class PageStore:
    """Flat-file page storage: one `<title>.txt` file per page."""

    def __init__(self, root: Path | str, suffix: str = PAGE_SUFFIX):
        self.root = Path(root)
        self.suffix = suffix

    def load(self, title: str) -> Page:
        try:
            body = (self.root / f"{title}{self.suffix}").read_bytes()
        except OSError as exc:
            raise NotFoundError(title, exc) from exc
        return Page(title=title, body=body)

    def list_names(self) -> list[str]:
        """Returns page names in directory order, which is not sorted."""
        try:
            entries = os.listdir(self.root)
        except OSError as exc:
            raise StorageError(str(exc)) from exc
        return [name.removesuffix(self.suffix) for name in entries]


def page_store() -> PageStore:
    return PageStore(current_app.config["PAGES_DIR"])


def is_valid_title(candidate: str) -> bool:
    return TITLE_PATTERN.fullmatch(candidate) is not None


class RouteKind(enum.Enum):
    ROOT = "root"
    VIEW = "view"
    STATIC = "static"


class Route(NamedTuple):
    kind: RouteKind
    target: str


# Evaluated in order; "/" matches every path and must stay last.
ROUTES: tuple[tuple[str, RouteKind], ...] = (
    ("/view/", RouteKind.VIEW),
    ("/js/", RouteKind.STATIC),
    ("/css/", RouteKind.STATIC),
    ("/", RouteKind.ROOT),
)


def classify(path: str) -> Route:
    for prefix, kind in ROUTES:
        if not path.startswith(prefix):
            continue
        if kind is RouteKind.VIEW:
            return Route(kind, path[len(prefix):])
        if kind is RouteKind.STATIC:
            return Route(kind, path[1:])
        return Route(kind, path)
    return Route(RouteKind.ROOT, path)


def requester_identity() -> str:
    forwarded = request.headers.get("X-Real-Ip", "")
    if forwarded:
        return forwarded
    return request.remote_addr or ""


def record_access(subject: str, action: str) -> None:
    access_log.info("%s: %s by %s", subject, action, requester_identity())


# Looked up per record so the handler follows whatever sys.stdout currently is.
stdout_stream = LocalProxy(lambda: sys.stdout)
log_handler = logging.StreamHandler(stdout_stream)
log_handler.setFormatter(logging.Formatter("%(message)s"))


def configure_logging() -> None:
    """Sends access records and app diagnostics to stdout, one bare line each."""
    for logger in (access_log, app.logger):
        if log_handler not in logger.handlers:
            logger.addHandler(log_handler)
        logger.setLevel(logging.INFO)
    app.logger.removeHandler(default_handler)


def render(view_name: str, data: Any) -> str:
    try:
        return render_template(f"{view_name}{TEMPLATE_SUFFIX}", data=data)
    except TemplateError as exc:
        raise RenderError(exc.message or str(exc)) from exc


def preload_templates() -> None:
    for view_name in VIEWS:
        app.jinja_env.get_template(f"{view_name}{TEMPLATE_SUFFIX}")


@app.errorhandler(StorageError)
@app.errorhandler(RenderError)
def internal_error(exc: BlogError):
    return str(exc), 500, {"Content-Type": "text/plain; charset=utf-8"}


def show_index(path: str):
    record_access("Index", "viewed")
    if path != "/":
        return redirect("/", code=302)
    names = page_store().list_names()
    return render("index", names)


def view_page(title: str):
    record_access("View", title)
    try:
        page = page_store().load(title)
    except NotFoundError as exc:
        app.logger.info("page not found: %s", exc)
        return render("notfound", Page(title=title))
    return render("view", page)


def serve_asset(rel_path: str):
    record_access("Asset", rel_path)
    # Resolve below the prefix's own folder so ".." cannot climb out of it.
    folder, _, name = rel_path.partition("/")
    return send_from_directory(Path(current_app.config["ASSETS_DIR"]) / folder, name)


@app.route("/", defaults={"subpath": ""})
@app.route("/<path:subpath>")
def dispatch(subpath: str):
    route = classify(f"/{subpath}")
    if route.kind is RouteKind.VIEW:
        if not is_valid_title(route.target):
            abort(404)
        return view_page(route.target)
    if route.kind is RouteKind.STATIC:
        return serve_asset(route.target)
    return show_index(route.target)


configure_logging()

import logging
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))


# "hello" as a (fake) PNG and a minimal percent-encoded SVG
PNG_DATA_URI = "data:image/png;base64,aGVsbG8="
SVG_DATA_URI = "data:image/svg+xml,%3Csvg%20xmlns%3D%22http%3A%2F%2Fwww.w3.org%2F2000%2Fsvg%22%2F%3E"

INDEX_HTML = (
    "<!doctype html>\n"
    "<html><head>\n"
    '<link rel="stylesheet" href="/css/site.css">\n'
    "<style>body{margin:0}</style>\n"
    "</head><body>\n"
    f'<div style="color:red"><img alt="logo" src="{PNG_DATA_URI}"></div>\n'
    '<script src="/js/app.js"></script>\n'
    "<script>console.log(1)</script>\n"
    "</body></html>\n"
)

ABOUT_HTML = (
    "<!doctype html>\n"
    "<html><head><title>About</title></head><body>\n"
    f'<p style="color:red">same logo <img src="{PNG_DATA_URI}"></p>\n'
    '<img src="https://cdn.example.org/photo.jpg">\n'
    "</body></html>\n"
)

SITE_CSS = f'.hero{{background:url("{SVG_DATA_URI}") no-repeat}}\n'
APP_JS = 'console.log("app");\n'


@pytest.fixture
def site(tmp_path: Path) -> Path:
    """A small generated site: two pages, one stylesheet, one script."""
    dist = tmp_path / "dist"
    (dist / "css").mkdir(parents=True)
    (dist / "js").mkdir()
    (dist / "about").mkdir()
    (dist / "index.html").write_text(INDEX_HTML, encoding="utf-8")
    (dist / "about" / "index.html").write_text(ABOUT_HTML, encoding="utf-8")
    (dist / "css" / "site.css").write_text(SITE_CSS, encoding="utf-8")
    (dist / "js" / "app.js").write_text(APP_JS, encoding="utf-8")
    return dist


@pytest.fixture
def isolate_logging():
    """Isolate logging configuration between tests to prevent CI issues.

    The CLI callback reconfigures the root logger with a RichHandler; this
    fixture restores the original handlers afterwards.
    """
    # Store original logging state
    original_handlers = logging.root.handlers[:]
    original_level = logging.root.level

    # Clear all handlers to prevent stream access issues
    logging.root.handlers.clear()

    # Add a null handler that won't cause stream issues
    null_handler = logging.NullHandler()
    logging.root.addHandler(null_handler)

    yield

    # Restore original logging state
    logging.root.handlers.clear()
    logging.root.handlers.extend(original_handlers)
    logging.root.setLevel(original_level)

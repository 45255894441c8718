from __future__ import annotations

import pytest

from miniapp_factory.tools import ProjectFile

INDEX_HTML = (
    "<!DOCTYPE html>\n"
    "<html>\n"
    "<head><title>Shop</title></head>\n"
    "<body>\n"
    '<h1 class="title">Hello</h1>\n'
    '<p class="ad">Buy now</p>\n'
    '<p class="ad">Sale</p>\n'
    '<ul id="list"><li>one</li></ul>\n'
    "</body>\n"
    "</html>\n"
)

STYLES_CSS = "/* base */\nbody {\n  color: red;\n}\n\nh1 { font-size: 2rem; }\n"


@pytest.fixture
def project_files() -> list[ProjectFile]:
    return [
        ProjectFile.from_path("index.html", INDEX_HTML),
        ProjectFile.from_path("styles.css", STYLES_CSS),
        ProjectFile.from_path("app.js", "console.log('hi');\n"),
    ]

from __future__ import annotations

import re

from bs4 import BeautifulSoup

LINE_BREAK_PATTERN = re.compile(r"(\r\n|\n\r|\n|\r)")


def strip_tags(html: str) -> str:
    if not html:
        return ""
    return BeautifulSoup(html, "html.parser").get_text()


def nl2br(text: str) -> str:
    return LINE_BREAK_PATTERN.sub(r"<br />\1", text)

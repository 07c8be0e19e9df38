"""
Structural check for generated article markup.

The check is a pattern match, not an HTML parse: malformed or hostile
markup can pass it and unusual but valid markup can fail it.
"""

import html
import re
from typing import Optional

H2_PATTERN = re.compile(r"<h2[^>]*>.*?</h2>", re.IGNORECASE)
P_PATTERN = re.compile(r"<p[^>]*>.*?</p>", re.IGNORECASE)


def is_valid_article_html(text: Optional[str]) -> bool:
    """True when the text contains an ``<h2>`` or a ``<p>`` element."""
    if not text:
        return False
    return bool(H2_PATTERN.search(text) or P_PATTERN.search(text))


def with_reference_passage(content: str, passage: str) -> str:
    """Append a re-ranked source passage as a highlighted reference block."""
    block = (
        '\n<blockquote class="highlight-info">'
        f'<p class="article-p">{html.escape(passage)}</p>'
        '</blockquote>'
    )
    return content.rstrip() + block

"""
Helper functions for preparing documents for pagination.

These functions sanitize incoming markup, check that it has a content
root, and wrap it in the fixed container the engine measures against.
"""

import html as html_lib
import re
from typing import Dict, Optional

from bs4 import BeautifulSoup
from bs4.element import Doctype, Tag

from .errors import InputError

CONTAINER_ID = "pagination-container"

# Elements that never count as the content root
NON_CONTENT_TAGS = {"style", "script", "link", "meta", "title", "noscript", "template", "base"}

_SANITIZE_PATTERNS = [
    # Browser-extension (Grammarly) elements and attributes
    r"<grammarly-[a-z0-9-]+\b[^>]*/?>",
    r"</grammarly-[a-z0-9-]+\s*>",
    r"""\sdata-new-gr-[a-z0-9_-]+(?:\s*=\s*(?:"[^"]*"|'[^']*'|[^\s>]+))?""",
    r"""\sdata-gr-ext-installed(?:\s*=\s*(?:"[^"]*"|'[^']*'|[^\s>]+))?""",
    r"""\sdata-gr-[a-z0-9_-]+(?:\s*=\s*(?:"[^"]*"|'[^']*'|[^\s>]+))?""",
    r"""\sdata-gramm(?:arly)?[a-z0-9_-]*(?:\s*=\s*(?:"[^"]*"|'[^']*'|[^\s>]+))?""",
    r"""\sdata-enable-grammarly(?:\s*=\s*(?:"[^"]*"|'[^']*'|[^\s>]+))?""",
    r"""\sgr-id(?:\s*=\s*(?:"[^"]*"|'[^']*'|[^\s>]+))?""",
    # Script tags
    r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>",
    # Inline event handlers (quoted or unquoted)
    r"""\son[a-z0-9_-]+\s*=\s*(?:"[^"]*"|'[^']*'|`[^`]*`|[^\s>]+)""",
    r"javascript:",
    r"vbscript:",
    r"<iframe\b[^<]*(?:(?!</iframe>)<[^<]*)*</iframe>",
    r"<object\b[^<]*(?:(?!</object>)<[^<]*)*</object>",
    r"<embed\b[^>]*>",
    r"<form\b[^<]*(?:(?!</form>)<[^<]*)*</form>",
    r"""<meta[^>]*http-equiv=["']refresh["'][^>]*>""",
]
_SANITIZE_RES = [re.compile(pattern, re.IGNORECASE) for pattern in _SANITIZE_PATTERNS]


def sanitize_html(markup: str) -> str:
    """
    Remove active content and browser-extension residue from markup.

    The document is loaded into a real browser for measurement, so scripts,
    event handlers, frames, embeds and forms are stripped first.

    Args:
        markup: Raw HTML

    Returns:
        Sanitized HTML
    """
    for pattern in _SANITIZE_RES:
        markup = pattern.sub("", markup)
    return markup


def sanitize_for_path(text: str) -> str:
    """
    Sanitize text for use in filenames.

    Example:
        >>> sanitize_for_path("Jane Doe (CV)")
        "Jane_Doe__CV_"
    """
    cleaned = re.sub(r'[^\w\s-]', '_', text)
    return cleaned.replace(" ", "_")


def build_pdf_filename(name: Optional[str] = None) -> str:
    """Download filename for a rendered document ("resume.pdf" by default)."""
    if not name or not name.strip():
        return "resume.pdf"
    stem = name.strip()
    if stem.lower().endswith(".pdf"):
        stem = stem[:-4]
    return f"{sanitize_for_path(stem)}.pdf"


def validate_html_input(markup: Optional[str], max_chars: int) -> str:
    """
    Check the size preconditions of incoming markup.

    Raises:
        InputError: If the markup is empty or longer than max_chars
    """
    if not markup or not markup.strip():
        raise InputError("html_empty", "HTML content is required")
    if len(markup) > max_chars:
        raise InputError(
            "html_size",
            f"HTML content is {len(markup)} characters, above the limit of {max_chars}"
        )
    return markup


def _first_content_element(parent) -> Optional[Tag]:
    for child in parent.children:
        if isinstance(child, Tag) and child.name not in NON_CONTENT_TAGS:
            return child
    return None


def locate_content_root(markup: str, selector: str) -> Tag:
    """
    Find the content root the engine will paginate.

    The root is the first element matching ``selector``; without a match,
    the first content element of the body (or of the fragment) is used.
    The browser surface applies the same rule.

    Raises:
        InputError: If no content root can be identified
    """
    soup = BeautifulSoup(markup, "html.parser")
    root = soup.select_one(selector)
    if root is not None:
        return root
    scope = soup.body if soup.body is not None else soup
    root = _first_content_element(scope)
    if root is None:
        raise InputError(
            "content_root",
            f"No content root found: nothing matches {selector!r} and the document has no content element"
        )
    return root


def _render_attrs(attrs: Dict) -> str:
    parts = []
    for key, value in attrs.items():
        if isinstance(value, list):
            value = " ".join(value)
        parts.append(f' {key}="{html_lib.escape(str(value), quote=True)}"')
    return "".join(parts)


def build_render_document(markup: str, render_width_px: int, content_root_selector: str) -> str:
    """
    Build the complete HTML document loaded into the rendering surface.

    Head content of a full document (styles, fonts) is preserved; body
    content is moved into the fixed pagination container, laid out at the
    render width with unconstrained height.

    Args:
        markup: Sanitized HTML, either a fragment or a full document
        render_width_px: Container width in CSS pixels
        content_root_selector: Selector of the content root

    Returns:
        Complete HTML document string

    Raises:
        InputError: If no content root can be identified
    """
    locate_content_root(markup, content_root_selector)

    soup = BeautifulSoup(markup, "html.parser")
    head_html = soup.head.decode_contents() if soup.head is not None else ""
    if soup.body is not None:
        body_html = soup.body.decode_contents()
        body_attrs = _render_attrs(soup.body.attrs)
    else:
        if soup.head is not None:
            soup.head.decompose()
        for item in list(soup.contents):
            if isinstance(item, Doctype):
                item.extract()
        if soup.html is not None:
            soup.html.unwrap()
        body_html = str(soup)
        body_attrs = ""

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width={render_width_px}">
    {head_html}
    <style>
        html, body {{
            margin: 0 !important;
            padding: 0 !important;
        }}

        #{CONTAINER_ID} {{
            position: relative;
            width: {render_width_px}px;
            height: auto;
            overflow: visible;
            margin: 0;
            box-sizing: border-box;
        }}

        [data-pagination-spacer] {{
            display: block;
            width: 100%;
            margin: 0;
            padding: 0;
            border: 0;
            flex: none;
        }}
    </style>
</head>
<body{body_attrs}>
    <div id="{CONTAINER_ID}">{body_html}</div>
</body>
</html>
"""

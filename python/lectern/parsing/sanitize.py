"""HTML sanitization for chapter content.

Every chapter body passes through here before it is returned, whether it came
from an EPUB document or from rendered Markdown:
- Scripting, embedding, and form elements are removed with their content
- Event handler attributes (on*) are removed
- javascript:/vbscript: URLs are neutralized
"""

import html
import re

from lxml.html import HtmlElement, fragment_fromstring, tostring

# Removed together with everything inside them.
DANGEROUS_TAGS = frozenset(
    {
        "script",
        "style",
        "iframe",
        "object",
        "embed",
        "applet",
        "form",
        "input",
        "button",
        "textarea",
        "select",
        "noscript",
        "frame",
        "frameset",
        "base",
        "link",
        "meta",
    }
)

# Attributes whose value is followed as a URL.
URL_ATTRS = frozenset({"href", "xlink:href", "src", "poster", "action", "formaction", "background"})

# Link attributes keep a harmless target; other URL attributes are dropped.
LINK_ATTRS = frozenset({"href", "xlink:href"})

FORBIDDEN_SCHEMES = frozenset({"javascript", "vbscript"})

EVENT_HANDLER_RE = re.compile(r"^on", re.IGNORECASE)

# Browsers ignore control characters and whitespace inside a scheme.
_URL_NOISE_RE = re.compile(r"[\x00-\x20]+")


def is_forbidden_url(value: str) -> bool:
    scheme, sep, _rest = _URL_NOISE_RE.sub("", value).partition(":")
    return bool(sep) and scheme.lower() in FORBIDDEN_SCHEMES


def sanitize_tree(root: HtmlElement) -> None:
    """Sanitize everything below root in place (root itself is kept)."""
    for el in list(root.iter(*DANGEROUS_TAGS)):
        if el is not root:
            el.drop_tree()

    for el in root.iter():
        if not isinstance(el.tag, str):
            continue
        for attr in list(el.attrib):
            name = attr.lower()
            if EVENT_HANDLER_RE.match(name):
                del el.attrib[attr]
            elif name in URL_ATTRS and is_forbidden_url(el.attrib[attr]):
                if name in LINK_ATTRS:
                    el.set(attr, "#")
                else:
                    del el.attrib[attr]


def serialize_children(root: HtmlElement) -> str:
    """Inner HTML of root: its leading text plus each child with its tail."""
    parts = [html.escape(root.text, quote=False)] if root.text else []
    parts.extend(tostring(child, encoding="unicode", method="html") for child in root)
    return "".join(parts)


def sanitize_fragment(markup: str) -> str:
    """Sanitize an HTML fragment and return it as a string."""
    if not markup or not markup.strip():
        return ""
    wrapper = fragment_fromstring(markup, create_parent="div")
    sanitize_tree(wrapper)
    return serialize_children(wrapper)

"""Page fragments: the script tags that embed a compiled client module."""

from __future__ import annotations

import html
import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from starlette.responses import HTMLResponse

# Static import specifiers relative to the importing module: from './x.js' / import './x.js'
_RELATIVE_IMPORT = re.compile(r"""(\b(?:from|import)\s*)(["'])\./""")


def _escape_inline(js: str) -> str:
    # A literal "</script" would end the inline block early
    return js.replace("</script", "<\\/script").replace("</SCRIPT", "<\\/SCRIPT")


def link_module_imports(js: str, base_url: str) -> str:
    """Point an ES module's relative imports at ``base_url``.

    Inline module scripts resolve relative specifiers against the page URL,
    so sibling modules have to be addressed through the route serving them.
    """
    base = base_url.rstrip("/") + "/"
    return _RELATIVE_IMPORT.sub(lambda m: f"{m.group(1)}{m.group(2)}{base}", js)


@dataclass
class PageFragment:
    """External script URLs followed by inline JavaScript.

    ``inline`` holds classic scripts, ``modules`` holds ES module scripts.
    Browsers run module scripts after the document is parsed, so external
    scripts such as jQuery are always loaded by then.
    """

    scripts: list[str] = field(default_factory=list)
    inline: list[str] = field(default_factory=list)
    modules: list[str] = field(default_factory=list)

    def __add__(self, other: PageFragment) -> PageFragment:
        scripts = list(self.scripts)
        for url in other.scripts:
            if url not in scripts:
                scripts.append(url)
        return PageFragment(
            scripts=scripts,
            inline=[*self.inline, *other.inline],
            modules=[*self.modules, *other.modules],
        )

    def render(self) -> str:
        parts = [f'<script src="{html.escape(url)}"></script>' for url in self.scripts]
        parts.extend(f"<script>{_escape_inline(js)}</script>" for js in self.inline)
        parts.extend(f'<script type="module">{_escape_inline(js)}</script>' for js in self.modules)
        return "\n".join(parts)

    def __html__(self) -> str:
        return self.render()

    def __str__(self) -> str:
        return self.render()


def require_jquery(jquery_url: str) -> PageFragment:
    """Fragment including the client helper library."""
    return PageFragment(scripts=[jquery_url])


def combine(fragments: Iterable[PageFragment]) -> PageFragment:
    result = PageFragment()
    for fragment in fragments:
        result = result + fragment
    return result


def fragment_response(
    *fragments: PageFragment,
    title: str = "",
    body: str = "",
    status_code: int = 200,
) -> HTMLResponse:
    """Minimal HTML page with the fragments' scripts at the end of the body."""
    scripts = combine(fragments).render()
    content = (
        "<!DOCTYPE html>\n"
        f"<html><head><title>{html.escape(title)}</title></head>\n"
        f"<body>\n{body}\n{scripts}\n</body></html>"
    )
    return HTMLResponse(content, status_code=status_code)

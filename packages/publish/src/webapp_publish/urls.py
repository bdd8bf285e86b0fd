from __future__ import annotations

import re

_SLASH_RUN = re.compile(r"/{2,}")
_SCHEME_TAIL = re.compile(r"[A-Za-z][A-Za-z0-9+.\-]*:$")


def normalize_url(url: str) -> str:
    """
    Collapse runs of "/" into one, except right after a scheme token,
    where the run becomes exactly "//".

      https://a//b//c -> https://a/b/c
      https:///a      -> https://a
    """

    def _collapse(m: re.Match[str]) -> str:
        if _SCHEME_TAIL.search(url, 0, m.start()):
            return "//"
        return "/"

    return _SLASH_RUN.sub(_collapse, url)


def join_url(*parts: str) -> str:
    return normalize_url("/".join(parts))

from __future__ import annotations

import hashlib
import re
import time
from typing import Optional


_UNSAFE_RE = re.compile(r"[^A-Za-z0-9._()>+-]+")
_HASH_LEN = 8


def safe_name(value: str, *, max_len: int = 120) -> str:
    """
    Turn a record identifier into a single path component.

    Variant names look like `NM_000277.2(PAH):c.1222C>T (p.Arg408Trp)`; colons, slashes and spaces are
    replaced, the rest is kept so directories stay recognizable. Whenever the name had to be changed a
    short hash of the original is appended, so two identifiers never share a directory.
    """
    raw = (value or "").strip()
    s = _UNSAFE_RE.sub("_", raw).strip("._")
    # ">" is legal on POSIX but not on Windows.
    s = s.replace(">", "-")
    if not s:
        return "record"
    if s == raw and len(s) <= max_len:
        return s
    digest = hashlib.sha1(raw.encode("utf-8")).hexdigest()[:_HASH_LEN]
    return f"{s[: max_len - _HASH_LEN - 1]}-{digest}"


def run_stamp(now: Optional[float] = None) -> str:
    return time.strftime("%Y%m%d_%H%M%S", time.localtime(now))

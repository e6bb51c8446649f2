from __future__ import annotations

import re

# Semantic Versioning 2.0.0 with a leading "v", pre-release and build metadata included.
_VERSION_TAG_RE = re.compile(
    r"v(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+([0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?"
)


def is_version_tag(tag: str) -> bool:
    return _VERSION_TAG_RE.fullmatch(tag) is not None

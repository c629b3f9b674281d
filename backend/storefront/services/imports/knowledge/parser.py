from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePath

_HEADING = re.compile(r"^#\s+(.+)$", re.MULTILINE)


@dataclass(frozen=True)
class PolicyDocument:
    source_id: str
    title: str
    content: str


def parse_policy_markdown(file_name: str, content: str) -> PolicyDocument:
    """Title is the first ``# `` heading, else the file stem."""
    stem = PurePath(file_name).stem
    match = _HEADING.search(content or "")
    title = match.group(1).strip() if match else stem
    return PolicyDocument(source_id=stem, title=title or stem, content=(content or "").strip())

"""Request collections: loading records and laying them out as tree nodes."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from kalo.tree import CollectionNode, NodeKind, recompute_visibility

logger = logging.getLogger(__name__)

UNTAGGED = "untagged"


class StoreError(Exception):
    """The collection file is readable JSON but not a valid collection."""


@dataclass
class RequestRecord:
    name: str
    method: str = "GET"
    url: str = ""
    folder: str = ""  # "" for requests at the collection root
    tags: list[str] = field(default_factory=list)
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""
    response: str = ""  # example response body

    @property
    def label(self) -> str:
        return f"{self.method} {self.name}"


def parse_requests(data: object) -> list[RequestRecord]:
    """Build records from decoded collection JSON.

    Accepts either a list of request objects or ``{"requests": [...]}``.
    A non-string ``response`` is re-encoded as indented JSON.
    """
    if isinstance(data, dict):
        data = data.get("requests", [])
    if not isinstance(data, list):
        raise StoreError("collection must be a list of requests")

    records: list[RequestRecord] = []
    for i, entry in enumerate(data):
        if not isinstance(entry, dict) or not isinstance(entry.get("name"), str):
            raise StoreError(f"request #{i + 1}: missing name")
        tags = entry.get("tags") or []
        if not isinstance(tags, list):
            raise StoreError(f"request {entry['name']!r}: tags must be a list")
        headers = entry.get("headers") or {}
        if not isinstance(headers, dict):
            raise StoreError(f"request {entry['name']!r}: headers must be an object")
        response = entry.get("response", "")
        if not isinstance(response, str):
            response = json.dumps(response, indent=2, ensure_ascii=False)
        records.append(
            RequestRecord(
                name=entry["name"],
                method=str(entry.get("method", "GET")).upper(),
                url=str(entry.get("url", "")),
                folder=str(entry.get("folder", "")),
                tags=[str(t) for t in tags],
                headers={str(k): str(v) for k, v in headers.items()},
                body=str(entry.get("body", "")),
                response=response,
            )
        )
    return records


def load_requests(path: str | Path) -> list[RequestRecord]:
    """Read a collection file.  Raises OSError, JSONDecodeError or StoreError."""
    content = Path(path).read_text(encoding="utf-8")
    records = parse_requests(json.loads(content))
    logger.info("loaded %d request(s) from %s", len(records), path)
    return records


def _group_by_tag(records: list[RequestRecord]) -> dict[str, list[RequestRecord]]:
    groups: dict[str, list[RequestRecord]] = {}
    for record in records:
        for tag in record.tags or [UNTAGGED]:
            groups.setdefault(tag, []).append(record)
    return groups


def _append_tag_groups(
    nodes: list[CollectionNode], groups: dict[str, list[RequestRecord]]
) -> None:
    names = sorted(groups)
    # A lone "untagged" group gets no header; its requests hang off the parent.
    headers = len(names) > 1 or names[0] != UNTAGGED
    for tag in names:
        if headers:
            nodes.append(CollectionNode(name=tag, kind=NodeKind.TAG_GROUP))
        for record in groups[tag]:
            nodes.append(CollectionNode(name=record.label, kind=NodeKind.LEAF, ref=record))


def build_collection_nodes(records: list[RequestRecord]) -> list[CollectionNode]:
    """Lay records out in pre-order: root requests, then folders (sorted).

    Within each scope requests are grouped by tag, tags sorted.  Every
    container starts collapsed.
    """
    folders: dict[str, list[RequestRecord]] = {}
    root: list[RequestRecord] = []
    for record in records:
        if record.folder:
            folders.setdefault(record.folder, []).append(record)
        else:
            root.append(record)

    nodes: list[CollectionNode] = []
    # Root requests go first: anything after a folder is read as its child.
    if root:
        _append_tag_groups(nodes, _group_by_tag(root))
    for name in sorted(folders):
        nodes.append(CollectionNode(name=name, kind=NodeKind.FOLDER))
        _append_tag_groups(nodes, _group_by_tag(folders[name]))
    return recompute_visibility(nodes)

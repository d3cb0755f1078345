from __future__ import annotations

import json
from typing import Any, Dict, List, Sequence

from pydantic import ValidationError

from .models import HystrixSnapshot

_DATA_PREFIX = "data:"


class SnapshotEncodeError(ValueError):
    """A snapshot could not be turned into dashboard JSON."""


class SnapshotEncoder:
    """Serializes health snapshots into pretty-printed Hystrix stream JSON."""

    def __init__(self, *, indent: int = 2) -> None:
        self._indent = max(0, int(indent))

    def encode(self, snapshot: Any) -> bytes:
        try:
            model = HystrixSnapshot.from_raw(snapshot)
            document = json.dumps(
                model.to_wire(),
                indent=self._indent,
                ensure_ascii=False,
                allow_nan=False,
            )
        except (ValidationError, TypeError, ValueError) as exc:
            raise SnapshotEncodeError(f"invalid hystrix snapshot: {exc}") from exc
        return document.encode("utf-8")


def frame_events(documents: Sequence[bytes]) -> bytes:
    """Frame each JSON document as one ``data:`` event block."""
    blocks: List[str] = []
    for document in documents:
        lines = document.decode("utf-8").splitlines() or [""]
        blocks.append("\n".join(f"{_DATA_PREFIX} {line}" for line in lines) + "\n\n")
    return "".join(blocks).encode("utf-8")


def split_event_frames(payload: bytes | str) -> List[str]:
    """Recover the JSON document text carried by each ``data:`` event block."""
    text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
    documents: List[str] = []
    for block in text.split("\n\n"):
        data_lines = [
            line[len(_DATA_PREFIX):].removeprefix(" ")
            for line in block.splitlines()
            if line.startswith(_DATA_PREFIX)
        ]
        if data_lines:
            documents.append("\n".join(data_lines))
    return documents


def decode_event_frames(payload: bytes | str) -> List[Dict[str, Any]]:
    return [json.loads(document) for document in split_event_frames(payload)]


def snapshot_name(snapshot: Any) -> str:
    if isinstance(snapshot, HystrixSnapshot):
        return snapshot.name
    getter = getattr(snapshot, "get", None)
    if callable(getter):
        try:
            return str(getter("name", "?"))
        except Exception:
            return "?"
    return "?"

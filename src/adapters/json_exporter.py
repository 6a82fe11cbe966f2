"""JSON export of aggregation results (camelCase field names)."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Sequence

from pydantic import BaseModel


def dump_models(payload: BaseModel | Sequence[BaseModel]) -> str:
    """Serialize a model (or a list of models) with a stable layout."""

    data: Any
    if isinstance(payload, BaseModel):
        data = payload.model_dump(mode="json", by_alias=True)
    else:
        data = [item.model_dump(mode="json", by_alias=True) for item in payload]
    return json.dumps(data, ensure_ascii=False, indent=2, sort_keys=True) + "\n"


def export_json(*, payload: BaseModel | Sequence[BaseModel], output_path: Path) -> Path:
    """Write `payload` to `output_path` as UTF-8 JSON."""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(dump_models(payload), encoding="utf-8")
    return output_path

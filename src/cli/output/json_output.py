"""JSON output mode utilities."""

import json
from dataclasses import is_dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping
from uuid import UUID

from rich.console import Console


class CLIJSONEncoder(json.JSONEncoder):
    """JSON encoder that handles CLI types."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, (set, frozenset)):
            return sorted(obj)
        if isinstance(obj, Mapping):
            return dict(obj)
        if is_dataclass(obj) and not isinstance(obj, type):
            return {name: getattr(obj, name) for name in obj.__dataclass_fields__}
        if hasattr(obj, "__dict__"):
            return obj.__dict__
        return super().default(obj)


def json_output(console: Console, data: Any) -> None:
    """Output data as formatted JSON."""
    console.print_json(json.dumps(data, cls=CLIJSONEncoder))

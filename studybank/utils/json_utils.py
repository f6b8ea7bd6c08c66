"""JSON serialization utilities."""
import json
from pathlib import Path


def json_dump(payload: object) -> str:
    """Serialize object to pretty JSON string."""
    return json.dumps(payload, ensure_ascii=False, indent=2)


def json_load(data: str) -> object:
    """Deserialize JSON string to object."""
    return json.loads(data)


def load_json_column(raw: str | None, default: object) -> object:
    """Decode a JSON text column, falling back to default."""
    if not raw:
        return default
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return default


def dump_json_column(value: object) -> str | None:
    """Encode a value for a JSON text column (None stays NULL)."""
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False)


def read_json_file(path: Path, default: object) -> object:
    """Read and parse JSON file, return default if not exists."""
    if not path.exists():
        return default
    return json_load(path.read_text(encoding="utf-8"))


def write_json_file(path: Path, payload: object) -> None:
    """Write object as JSON file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json_dump(payload), encoding="utf-8")

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from pingscan.errors import SchemaError

KNOWN_FIELDS = ("version", "players", "description", "favicon")


@dataclass
class Version:
    name: str
    protocol: int


@dataclass
class PlayerSample:
    name: str
    id: str


@dataclass
class Players:
    max: int
    online: int
    sample: List[PlayerSample] = field(default_factory=list)


@dataclass
class StatusPayload:
    version: Version
    players: Players
    description: Union[str, Dict[str, Any]]
    favicon: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def motd(self) -> str:
        return flatten_description(self.description)


def flatten_description(desc: Any) -> str:
    if isinstance(desc, str):
        return desc
    if isinstance(desc, list):
        return "".join(flatten_description(part) for part in desc)
    if isinstance(desc, dict):
        text = desc.get("text", "")
        if not isinstance(text, str):
            text = str(text)
        return text + "".join(flatten_description(part) for part in desc.get("extra", []))
    return ""


def _require(obj: Dict[str, Any], key: str, kind, where: str):
    value = obj.get(key)
    # bool is an int subclass and never a valid count
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise SchemaError(f"{where}.{key}: expected {kind.__name__}, got {type(value).__name__}")
    return value


def parse_status(text: str) -> StatusPayload:
    try:
        obj = json.loads(text)
    except ValueError as e:
        raise SchemaError(f"status is not valid JSON: {e}", raw=text) from e
    if not isinstance(obj, dict):
        raise SchemaError("status JSON is not an object", raw=text)
    try:
        version = _require(obj, "version", dict, "status")
        players = _require(obj, "players", dict, "status")
        sample = []
        for entry in players.get("sample") or []:
            if not isinstance(entry, dict):
                raise SchemaError("status.players.sample: entries must be objects")
            sample.append(PlayerSample(_require(entry, "name", str, "sample"), _require(entry, "id", str, "sample")))
        desc = obj.get("description", "")
        if not isinstance(desc, (str, dict)):
            raise SchemaError(f"status.description: expected string or object, got {type(desc).__name__}")
        favicon = obj.get("favicon")
        if favicon is not None and not isinstance(favicon, str):
            raise SchemaError("status.favicon: expected string")
        return StatusPayload(
            version=Version(_require(version, "name", str, "version"), _require(version, "protocol", int, "version")),
            players=Players(_require(players, "max", int, "players"), _require(players, "online", int, "players"), sample),
            description=desc,
            favicon=favicon,
            extra={k: v for k, v in obj.items() if k not in KNOWN_FIELDS},
        )
    except SchemaError as e:
        e.raw = text
        raise

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Iterable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AgentProfile:
    id: str
    name: Optional[str] = None
    description: Optional[str] = None
    instructions: Optional[str] = None
    model: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class AgentDirectory:
    """Read-only mapping from agent identifiers to display data.

    Only used to enrich listings; the run engine never consults it.
    """

    def __init__(self, profiles: Iterable[AgentProfile] = ()) -> None:
        self._profiles: dict[str, AgentProfile] = {}
        for profile in profiles:
            self._profiles[profile.id] = profile

    @classmethod
    def from_file(cls, path: str | Path) -> "AgentDirectory":
        """Load a directory from JSON.

        Accepts either ``{"agents": [{"id": ..., ...}, ...]}`` or a plain
        ``{"<id>": {...}}`` mapping. A missing file yields an empty directory.
        """
        file_path = Path(path)
        if not file_path.exists():
            logger.info("Agent directory %s not found; starting empty", file_path)
            return cls()

        with file_path.open("r", encoding="utf-8") as handle:
            raw = json.load(handle)

        if isinstance(raw, dict) and isinstance(raw.get("agents"), list):
            entries = raw["agents"]
        elif isinstance(raw, dict):
            entries = [{"id": key, **value} for key, value in raw.items() if isinstance(value, dict)]
        else:
            raise ValueError(f"Unsupported agent directory format in {file_path}")

        profiles = [_to_profile(entry) for entry in entries if isinstance(entry, dict)]
        directory = cls(profile for profile in profiles if profile is not None)
        logger.info("Loaded %d agent profile(s) from %s", len(directory), file_path)
        return directory

    def __len__(self) -> int:
        return len(self._profiles)

    def get(self, agent_id: str) -> Optional[AgentProfile]:
        return self._profiles.get(agent_id)

    def list(self) -> list[AgentProfile]:
        return sorted(self._profiles.values(), key=lambda profile: profile.id)


def _to_profile(entry: dict[str, Any]) -> Optional[AgentProfile]:
    agent_id = entry.get("id") or entry.get("agent_id")
    if not agent_id:
        logger.warning("Skipping agent entry without id: %s", entry.get("name"))
        return None
    return AgentProfile(
        id=str(agent_id),
        name=entry.get("name"),
        description=entry.get("description"),
        instructions=entry.get("instructions"),
        model=entry.get("model"),
    )

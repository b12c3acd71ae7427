"""Small JSON key-value file for the last-selected persona and the stored credential."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from personalens.personas import PersonaId

logger = logging.getLogger(__name__)

PERSONA_KEY = "selectedPersona"
CREDENTIAL_KEY = "apiKey"


class LocalState:
    """Reads and writes a flat JSON object; a missing or corrupt file reads as empty."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path).expanduser()

    def _load(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            logger.warning("Ignoring unreadable state file %s", self._path)
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> str | None:
        value = self._load().get(key)
        return value if isinstance(value, str) else None

    def put(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
        logger.debug("Stored %s in %s", key, self._path)

    @property
    def persona(self) -> PersonaId | None:
        value = self.get(PERSONA_KEY)
        try:
            return PersonaId(value) if value else None
        except ValueError:
            return None

    @persona.setter
    def persona(self, persona: PersonaId) -> None:
        self.put(PERSONA_KEY, PersonaId(persona).value)

    @property
    def credential(self) -> str:
        return self.get(CREDENTIAL_KEY) or ""

    @credential.setter
    def credential(self, key: str) -> None:
        self.put(CREDENTIAL_KEY, key)

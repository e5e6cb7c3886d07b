from __future__ import annotations

import json
from dataclasses import dataclass


@dataclass(frozen=True)
class ReleaseManifest:
    version: int
    url: str

    def to_json(self) -> str:
        # Key order is part of the published format.
        return json.dumps({"version": self.version, "url": self.url}, separators=(",", ":"))

    @classmethod
    def from_json(cls, text: str) -> "ReleaseManifest":
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError("Manifest must be a JSON object.")
        missing = [k for k in ("version", "url") if k not in data]
        if missing:
            raise ValueError(f"Manifest missing fields: {missing}")
        version = data["version"]
        if isinstance(version, bool) or not isinstance(version, int):
            raise ValueError(f"Manifest version must be an integer, got {version!r}")
        return cls(version=version, url=str(data["url"]))


@dataclass(frozen=True)
class ManifestSignature:
    signature_alg: str
    signature_key_id: str
    signature: str

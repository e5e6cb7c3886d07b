from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


DEFAULT_URL_TEMPLATE = "https://pool.fra1.digitaloceanspaces.com/versions/{version}.zip"
DEFAULT_TRUSTED_HOSTS: tuple[str, ...] = ("pool.fra1.digitaloceanspaces.com",)
DEFAULT_SIGNING_KEY_ID = "buildbump-release"


def _env_str(name: str, default: str) -> str:
    return os.environ.get(name, "").strip() or default


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class BumpPaths:
    root: Path
    version_file: Path
    manifest_file: Path

    @classmethod
    def default(cls) -> "BumpPaths":
        override_root = os.environ.get("BUILDBUMP_ROOT", "").strip()
        root = Path(override_root) if override_root else Path.cwd()
        version_file = os.environ.get("BUILDBUMP_VERSION_FILE", "").strip()
        manifest_file = os.environ.get("BUILDBUMP_MANIFEST_FILE", "").strip()
        return cls(
            root=root,
            version_file=Path(version_file) if version_file else root / "VERSION",
            manifest_file=Path(manifest_file) if manifest_file else root / "build" / "latest.json",
        )

    def with_overrides(self, version_file: Path | None = None, manifest_file: Path | None = None) -> "BumpPaths":
        return BumpPaths(
            root=self.root,
            version_file=version_file or self.version_file,
            manifest_file=manifest_file or self.manifest_file,
        )

    @property
    def lock_file(self) -> Path:
        return self.version_file.with_name(self.version_file.name + ".lock")

    @property
    def manifest_backup(self) -> Path:
        return self.manifest_file.with_name(self.manifest_file.name + ".bak")

    @property
    def signature_file(self) -> Path:
        return self.manifest_file.with_name(self.manifest_file.name + ".sig")

    @property
    def signature_backup(self) -> Path:
        return self.manifest_file.with_name(self.manifest_file.name + ".sig.bak")


@dataclass(frozen=True)
class PublishConfig:
    url_template: str = DEFAULT_URL_TEMPLATE
    trusted_hosts: tuple[str, ...] = DEFAULT_TRUSTED_HOSTS
    allow_insecure_http: bool = False
    signing_key: str | None = None
    signing_key_id: str = DEFAULT_SIGNING_KEY_ID
    lock_timeout_seconds: float = 0.0
    stale_lock_seconds: float = 600.0
    log_dir: Path | None = None
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if "{version}" not in self.url_template:
            raise ValueError(f"URL template must contain a {{version}} placeholder: {self.url_template!r}")

    @property
    def signing_enabled(self) -> bool:
        return bool(self.signing_key)

    @classmethod
    def from_env(cls) -> "PublishConfig":
        hosts_raw = os.environ.get("BUILDBUMP_TRUSTED_HOSTS", "").strip()
        if hosts_raw:
            trusted_hosts = tuple(h.strip() for h in hosts_raw.split(",") if h.strip())
        else:
            trusted_hosts = DEFAULT_TRUSTED_HOSTS
        log_dir = os.environ.get("BUILDBUMP_LOG_DIR", "").strip()
        return cls(
            url_template=_env_str("BUILDBUMP_URL_TEMPLATE", DEFAULT_URL_TEMPLATE),
            trusted_hosts=trusted_hosts,
            allow_insecure_http=_env_flag("BUILDBUMP_ALLOW_HTTP"),
            signing_key=os.environ.get("BUILDBUMP_SIGNING_KEY", "").strip() or None,
            signing_key_id=_env_str("BUILDBUMP_SIGNING_KEY_ID", DEFAULT_SIGNING_KEY_ID),
            lock_timeout_seconds=float(_env_str("BUILDBUMP_LOCK_TIMEOUT", "0")),
            stale_lock_seconds=float(_env_str("BUILDBUMP_STALE_LOCK", "600")),
            log_dir=Path(log_dir) if log_dir else None,
            log_level=_env_str("BUILDBUMP_LOG_LEVEL", "INFO"),
        )

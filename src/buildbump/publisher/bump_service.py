from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from buildbump.common.config import BumpPaths, PublishConfig
from buildbump.common.counter import read_version_counter, stage_version_counter
from buildbump.common.locking import PublishLock
from buildbump.common.manifest_security import (
    render_download_url,
    sign_manifest,
    signature_to_json,
    validate_trusted_url,
)
from buildbump.common.types import ManifestSignature, ReleaseManifest


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class BumpResult:
    previous_version: int
    manifest: ReleaseManifest
    manifest_file: Path
    version_file: Path
    signature_file: Path | None = None

    @property
    def version(self) -> int:
        return self.manifest.version


@dataclass(frozen=True)
class ConsistencyReport:
    consistent: bool
    counter: int | None = None
    manifest_version: int | None = None
    reason: str | None = None


def _tmp_path(path: Path) -> Path:
    return path.with_name(path.name + ".tmp")


def _remove_file(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass


def _take_backup(target: Path, backup: Path) -> None:
    # An empty backup marks a target that did not exist before the publish.
    _remove_file(backup)
    if target.exists():
        target.replace(backup)
    else:
        backup.write_bytes(b"")


def _restore_backup(target: Path, backup: Path) -> None:
    if backup.stat().st_size == 0:
        _remove_file(target)
        _remove_file(backup)
        return
    backup.replace(target)


class VersionBumper:
    def __init__(self, paths: BumpPaths, config: PublishConfig):
        self.paths = paths
        self.config = config

    def build_manifest(self, version: int) -> ReleaseManifest:
        url = render_download_url(self.config.url_template, version)
        validate_trusted_url(url, self.config.trusted_hosts, allow_http=self.config.allow_insecure_http)
        return ReleaseManifest(version=version, url=url)

    def preview(self) -> ReleaseManifest:
        current = read_version_counter(self.paths.version_file)
        return self.build_manifest(current + 1)

    def read_manifest(self) -> ReleaseManifest | None:
        path = self.paths.manifest_file
        if not path.exists():
            return None
        return ReleaseManifest.from_json(path.read_text(encoding="utf-8"))

    def check(self) -> ConsistencyReport:
        try:
            counter = read_version_counter(self.paths.version_file)
        except (OSError, ValueError) as exc:
            return ConsistencyReport(consistent=False, reason=f"VERSION unreadable: {exc}")
        try:
            manifest = self.read_manifest()
        except (OSError, ValueError) as exc:
            return ConsistencyReport(consistent=False, counter=counter, reason=f"Manifest unreadable: {exc}")
        if manifest is None:
            return ConsistencyReport(consistent=False, counter=counter, reason="Manifest not published yet.")
        if manifest.version != counter:
            return ConsistencyReport(
                consistent=False,
                counter=counter,
                manifest_version=manifest.version,
                reason=f"Manifest version {manifest.version} does not match VERSION {counter}.",
            )
        expected_url = render_download_url(self.config.url_template, counter)
        if manifest.url != expected_url:
            return ConsistencyReport(
                consistent=False,
                counter=counter,
                manifest_version=manifest.version,
                reason=f"Manifest url {manifest.url!r} does not match template ({expected_url!r}).",
            )
        return ConsistencyReport(consistent=True, counter=counter, manifest_version=manifest.version)

    def recover_interrupted_publish(self) -> None:
        for stale in (
            _tmp_path(self.paths.manifest_file),
            _tmp_path(self.paths.version_file),
            _tmp_path(self.paths.signature_file),
        ):
            if stale.exists():
                log.info("Removing stale staging file %s", stale)
                _remove_file(stale)

        manifest_backup = self.paths.manifest_backup
        sig_backup = self.paths.signature_backup
        if not manifest_backup.exists():
            # Interrupted after the signature was set aside but before the
            # manifest was touched.
            if sig_backup.exists():
                _restore_backup(self.paths.signature_file, sig_backup)
                log.warning("Restored manifest signature from backup after an interrupted publish.")
            return

        counter = read_version_counter(self.paths.version_file)
        try:
            current = self.read_manifest()
        except (OSError, ValueError):
            current = None

        if current is not None and current.version == counter:
            _remove_file(sig_backup)
            _remove_file(manifest_backup)
            log.info("Dropped stale publish backups; published manifest matches VERSION %d.", counter)
            return

        if sig_backup.exists():
            _restore_backup(self.paths.signature_file, sig_backup)
        else:
            _remove_file(self.paths.signature_file)
        _restore_backup(self.paths.manifest_file, manifest_backup)
        log.warning("Restored manifest from backup after an interrupted publish (VERSION=%d).", counter)

    def bump(self) -> BumpResult:
        lock = PublishLock(
            self.paths.lock_file,
            timeout_seconds=self.config.lock_timeout_seconds,
            stale_seconds=self.config.stale_lock_seconds,
        )
        with lock:
            self.recover_interrupted_publish()
            previous = read_version_counter(self.paths.version_file)
            manifest = self.build_manifest(previous + 1)
            signature = None
            if self.config.signing_enabled:
                signature = sign_manifest(manifest, self.config.signing_key or "", self.config.signing_key_id)
            self._publish(manifest, signature)

        log.info("Bumped build %d -> %d (%s)", previous, manifest.version, manifest.url)
        return BumpResult(
            previous_version=previous,
            manifest=manifest,
            manifest_file=self.paths.manifest_file,
            version_file=self.paths.version_file,
            signature_file=self.paths.signature_file if signature is not None else None,
        )

    def _publish(self, manifest: ReleaseManifest, signature: ManifestSignature | None) -> None:
        manifest_file = self.paths.manifest_file
        version_file = self.paths.version_file
        sig_file = self.paths.signature_file

        manifest_tmp = _tmp_path(manifest_file)
        sig_tmp = _tmp_path(sig_file)
        version_tmp = _tmp_path(version_file)
        staged = [manifest_tmp, sig_tmp, version_tmp]
        try:
            manifest_tmp.write_text(manifest.to_json(), encoding="utf-8")
            if signature is not None:
                sig_tmp.write_text(signature_to_json(signature), encoding="utf-8")
            stage_version_counter(version_file, manifest.version)
        except Exception:
            for path in staged:
                _remove_file(path)
            raise

        if signature is None and sig_file.exists():
            log.warning("Removing stale manifest signature %s; signing is not configured.", sig_file)

        # Signature is set aside before the manifest; recovery relies on it.
        backups: list[tuple[Path, Path]] = []
        try:
            for target, backup in (
                (sig_file, self.paths.signature_backup),
                (manifest_file, self.paths.manifest_backup),
            ):
                _take_backup(target, backup)
                backups.append((target, backup))
            manifest_tmp.replace(manifest_file)
            if signature is not None:
                sig_tmp.replace(sig_file)
            version_tmp.replace(version_file)
        except Exception:
            log.exception("Publish failed. Rolling back manifest.")
            for target, backup in reversed(backups):
                _restore_backup(target, backup)
            for path in staged:
                _remove_file(path)
            raise
        else:
            for _, backup in backups:
                _remove_file(backup)

        if signature is not None:
            log.info("Wrote manifest signature %s (key=%s)", sig_file, signature.signature_key_id)

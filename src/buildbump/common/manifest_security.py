from __future__ import annotations

import base64
import json
from dataclasses import asdict
from typing import Iterable
from urllib.parse import urlparse

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey

from buildbump.common.types import ManifestSignature, ReleaseManifest


MANIFEST_SIGNATURE_ALG = "ed25519"


def _normalize_host(host: str) -> str:
    return str(host or "").strip().lower().rstrip(".")


def _is_allowed_host(host: str, allowed_hosts: Iterable[str]) -> bool:
    normalized = _normalize_host(host)
    if not normalized:
        return False
    allowed = {_normalize_host(v) for v in allowed_hosts}
    if normalized in allowed:
        return True
    return any(normalized.endswith("." + entry) for entry in allowed)


def validate_trusted_url(url: str, allowed_hosts: Iterable[str], allow_http: bool = False) -> None:
    parsed = urlparse(str(url))
    scheme = (parsed.scheme or "").lower()
    if scheme != "https" and not (allow_http and scheme == "http"):
        raise ValueError(f"Untrusted URL scheme for release download: {url}")
    host = parsed.hostname or ""
    if not _is_allowed_host(host, allowed_hosts):
        raise ValueError(f"Untrusted release host: {host or '<none>'}")


def render_download_url(template: str, version: int) -> str:
    if "{version}" not in template:
        raise ValueError(f"URL template must contain a {{version}} placeholder: {template!r}")
    return template.replace("{version}", str(version))


def manifest_bytes(manifest: ReleaseManifest) -> bytes:
    return manifest.to_json().encode("utf-8")


def _decode_private_key(value: str) -> Ed25519PrivateKey:
    text = str(value or "").strip()
    if not text:
        raise ValueError("Manifest signing key is empty.")

    if text.startswith("-----BEGIN"):
        key = serialization.load_pem_private_key(text.encode("utf-8"), password=None)
        if not isinstance(key, Ed25519PrivateKey):
            raise ValueError("Manifest signing key must be an Ed25519 private key.")
        return key

    try:
        raw = base64.b64decode(text, validate=True)
    except Exception as exc:
        raise ValueError("Manifest signing key must be PEM or base64-encoded raw Ed25519 key.") from exc
    if len(raw) != 32:
        raise ValueError("Base64 manifest signing key must decode to 32 bytes.")
    return Ed25519PrivateKey.from_private_bytes(raw)


def public_key_b64(private_key_value: str) -> str:
    key = _decode_private_key(private_key_value)
    raw = key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return base64.b64encode(raw).decode("ascii")


def sign_manifest(manifest: ReleaseManifest, private_key_value: str, key_id: str) -> ManifestSignature:
    key = _decode_private_key(private_key_value)
    signature = key.sign(manifest_bytes(manifest))
    return ManifestSignature(
        signature_alg=MANIFEST_SIGNATURE_ALG,
        signature_key_id=str(key_id).strip(),
        signature=base64.b64encode(signature).decode("ascii"),
    )


def signature_to_json(signature: ManifestSignature) -> str:
    return json.dumps(asdict(signature), separators=(",", ":"))


def signature_from_json(text: str) -> ManifestSignature:
    raw = json.loads(text)
    if not isinstance(raw, dict):
        raise ValueError("Manifest signature must be a JSON object.")
    return ManifestSignature(
        signature_alg=str(raw.get("signature_alg", "")).strip().lower(),
        signature_key_id=str(raw.get("signature_key_id", "")).strip(),
        signature=str(raw.get("signature", "")).strip(),
    )


def verify_manifest_signature(
    manifest: ReleaseManifest,
    signature: ManifestSignature,
    public_keys: dict[str, str],
) -> None:
    if signature.signature_alg != MANIFEST_SIGNATURE_ALG:
        raise ValueError(f"Unsupported manifest signature algorithm: {signature.signature_alg or '<missing>'}")
    if not signature.signature_key_id:
        raise ValueError("Manifest signature_key_id is missing.")
    if not signature.signature:
        raise ValueError("Manifest signature is missing.")

    key_b64 = public_keys.get(signature.signature_key_id)
    if not key_b64:
        raise ValueError(f"Manifest key ID {signature.signature_key_id!r} is not trusted.")

    try:
        sig_raw = base64.b64decode(signature.signature, validate=True)
    except Exception as exc:
        raise ValueError("Manifest signature is not valid base64.") from exc

    try:
        pub_raw = base64.b64decode(key_b64, validate=True)
    except Exception as exc:
        raise ValueError(f"Public key for {signature.signature_key_id!r} is invalid.") from exc

    if len(pub_raw) != 32:
        raise ValueError(f"Public key for {signature.signature_key_id!r} must be 32 bytes.")

    pub = Ed25519PublicKey.from_public_bytes(pub_raw)
    try:
        pub.verify(sig_raw, manifest_bytes(manifest))
    except Exception as exc:
        raise ValueError("Manifest signature verification failed.") from exc

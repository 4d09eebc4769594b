"""Build id and preview credential helpers."""

import secrets
from collections.abc import Callable
from dataclasses import dataclass

from pageforge.errors import ConfigError


@dataclass(frozen=True, slots=True)
class PreviewProps:
    preview_mode_id: str
    preview_mode_signing_key: str
    preview_mode_encryption_key: str

    def to_json(self) -> dict[str, str]:
        return {
            "previewModeId": self.preview_mode_id,
            "previewModeSigningKey": self.preview_mode_signing_key,
            "previewModeEncryptionKey": self.preview_mode_encryption_key,
        }


def new_preview_props() -> PreviewProps:
    return PreviewProps(
        preview_mode_id=secrets.token_hex(16),
        preview_mode_signing_key=secrets.token_hex(32),
        preview_mode_encryption_key=secrets.token_hex(32),
    )


def new_build_id() -> str:
    return secrets.token_urlsafe(16)


def generate_build_id(generate: Callable[[], str | None] | None = None) -> str:
    """Return the user-generated build id, falling back to a random one."""
    build_id = generate() if generate is not None else None
    if build_id is None:
        return new_build_id()
    if not isinstance(build_id, str) or not build_id.strip():
        raise ConfigError("generate_build_id did not return a non-empty string")
    return build_id.strip()

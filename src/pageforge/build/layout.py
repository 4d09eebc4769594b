"""On-disk layout of a build's output directory."""

import posixpath
from dataclasses import dataclass
from pathlib import Path

SERVER_DIRECTORY = "server"
SERVERLESS_DIRECTORY = "serverless"
CLIENT_STATIC_FILES_PATH = "static"
PAGES_MANIFEST = "pages-manifest.json"
BUILD_MANIFEST = "build-manifest.json"
BUILD_ID_FILE = "BUILD_ID"
EXPORT_DIR = "export"
BUNDLE_EXT = ".py"


@dataclass(frozen=True, slots=True)
class BuildLayout:
    dist_dir: Path
    build_id: str
    serverless: bool = False
    modern: bool = False

    @property
    def server_dir(self) -> Path:
        return self.dist_dir / (SERVERLESS_DIRECTORY if self.serverless else SERVER_DIRECTORY)

    @property
    def pages_manifest_path(self) -> Path:
        return self.server_dir / PAGES_MANIFEST

    @property
    def build_manifest_path(self) -> Path:
        return self.dist_dir / BUILD_MANIFEST

    @property
    def export_dir(self) -> Path:
        return self.dist_dir / EXPORT_DIR

    @property
    def client_static_dir(self) -> Path:
        return self.dist_dir / CLIENT_STATIC_FILES_PATH / self.build_id

    def _pages_prefix(self) -> str:
        if self.serverless:
            return "pages"
        return posixpath.join(CLIENT_STATIC_FILES_PATH, self.build_id, "pages")

    def relative_output(self, file: str) -> str:
        """Path of an output file relative to the server directory."""
        return posixpath.join(self._pages_prefix(), file.lstrip("/"))

    def bundle_relative(self, normalized_page: str) -> str:
        return self.relative_output(normalized_page + BUNDLE_EXT)

    def server_bundle(self, normalized_page: str) -> Path:
        return self.server_dir / self.bundle_relative(normalized_page)

    def app_bundle(self) -> Path:
        return self.server_bundle("/_app")

    def error_bundle(self) -> Path:
        return self.server_bundle("/_error")

    def client_bundles(self, normalized_page: str) -> list[Path]:
        bundle = self.client_static_dir / "pages" / (normalized_page.lstrip("/") + ".js")
        bundles = [bundle]
        if self.modern:
            bundles.append(bundle.with_name(bundle.name[: -len(".js")] + ".module.js"))
        return bundles

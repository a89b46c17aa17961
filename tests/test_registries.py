"""Tests for the npm, PyPI and crates.io package managers."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Callable

import httpx
import pytest

from skills_pkg.errors import (
    InvalidSourceError,
    NetworkFailureError,
    PathTraversalError,
    UnsupportedArchiveError,
    VersionNotFoundError,
)
from skills_pkg.pkgmanagers import (
    CargoPackageManager,
    NpmPackageManager,
    PipPackageManager,
)
from skills_pkg.settings import Settings
from skills_pkg.types import Source

Handler = Callable[[httpx.Request], httpx.Response]
ClientFactory = Callable[[Handler], httpx.Client]


def _routes(routes: dict[str, httpx.Response], seen: list[str] | None = None) -> Handler:
    """Serve fixed responses keyed by URL; anything else is a 404."""

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if seen is not None:
            seen.append(url)
        return routes.get(url, httpx.Response(404))

    return handler


@pytest.fixture
def npm_metadata() -> dict:
    return {
        "name": "my-skill",
        "dist-tags": {"latest": "1.2.0"},
        "versions": {
            "1.0.0": {
                "dist": {"tarball": "https://registry.npmjs.org/my-skill/-/my-skill-1.0.0.tgz"}
            },
            "1.2.0": {
                "dist": {"tarball": "https://registry.npmjs.org/my-skill/-/my-skill-1.2.0.tgz"}
            },
        },
    }


class TestNpmPackageManager:
    """Tests for NpmPackageManager."""

    def test_source_type(self, settings: Settings) -> None:
        manager = NpmPackageManager.create(settings)
        try:
            assert manager.source_type == "npm"
        finally:
            manager.close()

    def test_download_latest(
        self,
        settings: Settings,
        mock_http: ClientFactory,
        make_tar_gz: Callable[..., bytes],
        npm_metadata: dict,
    ) -> None:
        """Test latest resolves through dist-tags and strips package/."""
        client = mock_http(
            _routes(
                {
                    "https://registry.npmjs.org/my-skill": httpx.Response(200, json=npm_metadata),
                    "https://registry.npmjs.org/my-skill/-/my-skill-1.2.0.tgz": httpx.Response(
                        200, content=make_tar_gz({"SKILL.md": "# npm skill"})
                    ),
                }
            )
        )
        manager = NpmPackageManager.create(settings, client)

        with manager.download(Source(kind="npm", locator="my-skill")) as download:
            assert download.resolved_version == "1.2.0"
            assert (download.local_path / "SKILL.md").read_text() == "# npm skill"
            assert download.from_external_ledger is False
            assert download.local_path.parent == settings.temp_dir

    def test_download_pinned_version(
        self,
        settings: Settings,
        mock_http: ClientFactory,
        make_tar_gz: Callable[..., bytes],
        npm_metadata: dict,
    ) -> None:
        client = mock_http(
            _routes(
                {
                    "https://registry.npmjs.org/my-skill": httpx.Response(200, json=npm_metadata),
                    "https://registry.npmjs.org/my-skill/-/my-skill-1.0.0.tgz": httpx.Response(
                        200, content=make_tar_gz({"SKILL.md": "old"})
                    ),
                }
            )
        )
        manager = NpmPackageManager.create(settings, client)

        with manager.download(Source(kind="npm", locator="my-skill"), "1.0.0") as download:
            assert download.resolved_version == "1.0.0"
            assert (download.local_path / "SKILL.md").read_text() == "old"

    def test_tarball_spooled_in_temp_dir(
        self,
        settings: Settings,
        mock_http: ClientFactory,
        make_tar_gz: Callable[..., bytes],
        npm_metadata: dict,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test the downloaded tarball is buffered under the configured temp directory."""
        spool_dirs: list[Path | None] = []
        temporary_file = tempfile.TemporaryFile

        def recording_temporary_file(*args, **kwargs):
            spool_dirs.append(kwargs.get("dir"))
            return temporary_file(*args, **kwargs)

        monkeypatch.setattr(tempfile, "TemporaryFile", recording_temporary_file)
        client = mock_http(
            _routes(
                {
                    "https://registry.npmjs.org/my-skill": httpx.Response(200, json=npm_metadata),
                    "https://registry.npmjs.org/my-skill/-/my-skill-1.2.0.tgz": httpx.Response(
                        200, content=make_tar_gz({"SKILL.md": "new"})
                    ),
                }
            )
        )
        manager = NpmPackageManager.create(settings, client)

        with manager.download(Source(kind="npm", locator="my-skill")):
            pass

        assert spool_dirs == [settings.temp_dir]

    def test_unknown_version(
        self, settings: Settings, mock_http: ClientFactory, npm_metadata: dict
    ) -> None:
        client = mock_http(
            _routes({"https://registry.npmjs.org/my-skill": httpx.Response(200, json=npm_metadata)})
        )
        manager = NpmPackageManager.create(settings, client)

        with pytest.raises(VersionNotFoundError, match="9.9.9"):
            manager.download(Source(kind="npm", locator="my-skill"), "9.9.9")

    def test_package_not_found(self, settings: Settings, mock_http: ClientFactory) -> None:
        manager = NpmPackageManager.create(settings, mock_http(_routes({})))

        with pytest.raises(NetworkFailureError) as exc_info:
            manager.latest_version(Source(kind="npm", locator="missing"))

        assert exc_info.value.reason == "not_found"
        assert "not found" in str(exc_info.value)

    def test_server_error(self, settings: Settings, mock_http: ClientFactory) -> None:
        client = mock_http(lambda request: httpx.Response(503))
        manager = NpmPackageManager.create(settings, client)

        with pytest.raises(NetworkFailureError, match="HTTP status 503"):
            manager.latest_version(Source(kind="npm", locator="my-skill"))

    def test_connection_error(self, settings: Settings, mock_http: ClientFactory) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        manager = NpmPackageManager.create(settings, mock_http(handler))

        with pytest.raises(NetworkFailureError) as exc_info:
            manager.latest_version(Source(kind="npm", locator="my-skill"))

        assert exc_info.value.reason == "connection"

    def test_invalid_json(self, settings: Settings, mock_http: ClientFactory) -> None:
        client = mock_http(lambda request: httpx.Response(200, content=b"<html>"))
        manager = NpmPackageManager.create(settings, client)

        with pytest.raises(NetworkFailureError, match="failed to parse"):
            manager.latest_version(Source(kind="npm", locator="my-skill"))

    def test_no_latest_tag(self, settings: Settings, mock_http: ClientFactory) -> None:
        client = mock_http(lambda request: httpx.Response(200, json={"versions": {}}))
        manager = NpmPackageManager.create(settings, client)

        with pytest.raises(VersionNotFoundError, match="no latest version"):
            manager.latest_version(Source(kind="npm", locator="my-skill"))

    def test_scoped_package_url(self, settings: Settings, mock_http: ClientFactory) -> None:
        """Test the scope slash is percent-encoded."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"dist-tags": {"latest": "0.1.0"}})

        manager = NpmPackageManager.create(settings, mock_http(handler))

        assert manager.latest_version(Source(kind="npm", locator="@acme/skill")) == "0.1.0"
        assert seen[0].url.raw_path == b"/@acme%2Fskill"

    def test_custom_registry(self, settings: Settings, mock_http: ClientFactory) -> None:
        seen: list[str] = []
        client = mock_http(
            _routes(
                {
                    "https://npm.internal/my-skill": httpx.Response(
                        200, json={"dist-tags": {"latest": "3.0.0"}}
                    )
                },
                seen,
            )
        )
        manager = NpmPackageManager.create(settings, client)
        source = Source(
            kind="npm", locator="my-skill", options={"registry": "https://npm.internal/"}
        )

        assert manager.latest_version(source) == "3.0.0"
        assert seen == ["https://npm.internal/my-skill"]

    def test_tarball_failure_cleans_up(
        self,
        settings: Settings,
        mock_http: ClientFactory,
        npm_metadata: dict,
        download_dir: Path,
    ) -> None:
        """Test a failed tarball download leaves no temp directory behind."""
        client = mock_http(
            _routes(
                {
                    "https://registry.npmjs.org/my-skill": httpx.Response(200, json=npm_metadata),
                    "https://registry.npmjs.org/my-skill/-/my-skill-1.2.0.tgz": httpx.Response(
                        500
                    ),
                }
            )
        )
        manager = NpmPackageManager.create(settings, client)

        with pytest.raises(NetworkFailureError):
            manager.download(Source(kind="npm", locator="my-skill"))

        assert list(download_dir.iterdir()) == []

    def test_malicious_tarball_cleans_up(
        self,
        settings: Settings,
        mock_http: ClientFactory,
        make_tar_gz: Callable[..., bytes],
        npm_metadata: dict,
        download_dir: Path,
    ) -> None:
        client = mock_http(
            _routes(
                {
                    "https://registry.npmjs.org/my-skill": httpx.Response(200, json=npm_metadata),
                    "https://registry.npmjs.org/my-skill/-/my-skill-1.2.0.tgz": httpx.Response(
                        200, content=make_tar_gz({"SKILL.md": "x", "../../evil": "x"})
                    ),
                }
            )
        )
        manager = NpmPackageManager.create(settings, client)

        with pytest.raises(PathTraversalError):
            manager.download(Source(kind="npm", locator="my-skill"))

        assert list(download_dir.iterdir()) == []

    def test_wrong_kind(self, settings: Settings, mock_http: ClientFactory) -> None:
        manager = NpmPackageManager.create(settings, mock_http(_routes({})))

        with pytest.raises(InvalidSourceError):
            manager.download(Source(kind="pip", locator="my-skill"))


def _pypi_metadata(files: list[dict]) -> dict:
    return {"info": {"version": "0.3.0"}, "releases": {"0.3.0": files, "0.1.0": []}}


class TestPipPackageManager:
    """Tests for PipPackageManager."""

    def test_download_sdist(
        self,
        settings: Settings,
        mock_http: ClientFactory,
        make_tar_gz: Callable[..., bytes],
    ) -> None:
        """Test the .tar.gz sdist is preferred over a wheel."""
        files = [
            {
                "packagetype": "bdist_wheel",
                "filename": "py_skill-0.3.0-py3-none-any.whl",
                "url": "https://files.example/py_skill-0.3.0-py3-none-any.whl",
            },
            {
                "packagetype": "sdist",
                "filename": "py-skill-0.3.0.tar.gz",
                "url": "https://files.example/py-skill-0.3.0.tar.gz",
            },
        ]
        client = mock_http(
            _routes(
                {
                    "https://pypi.org/pypi/py-skill/json": httpx.Response(
                        200, json=_pypi_metadata(files)
                    ),
                    "https://files.example/py-skill-0.3.0.tar.gz": httpx.Response(
                        200, content=make_tar_gz({"SKILL.md": "py"}, prefix="py-skill-0.3.0/")
                    ),
                }
            )
        )
        manager = PipPackageManager.create(settings, client)

        with manager.download(Source(kind="pip", locator="py-skill")) as download:
            assert download.resolved_version == "0.3.0"
            assert (download.local_path / "SKILL.md").read_text() == "py"

    def test_wheel_only(self, settings: Settings, mock_http: ClientFactory) -> None:
        files = [
            {
                "packagetype": "bdist_wheel",
                "filename": "py_skill-0.3.0-py3-none-any.whl",
                "url": "https://files.example/py_skill-0.3.0-py3-none-any.whl",
            }
        ]
        client = mock_http(
            _routes(
                {
                    "https://pypi.org/pypi/py-skill/json": httpx.Response(
                        200, json=_pypi_metadata(files)
                    )
                }
            )
        )
        manager = PipPackageManager.create(settings, client)

        with pytest.raises(UnsupportedArchiveError, match="wheel file extraction"):
            manager.download(Source(kind="pip", locator="py-skill"))

    def test_no_usable_distribution(self, settings: Settings, mock_http: ClientFactory) -> None:
        files = [{"packagetype": "sdist", "filename": "py-skill-0.3.0.zip", "url": "x"}]
        client = mock_http(
            _routes(
                {
                    "https://pypi.org/pypi/py-skill/json": httpx.Response(
                        200, json=_pypi_metadata(files)
                    )
                }
            )
        )
        manager = PipPackageManager.create(settings, client)

        with pytest.raises(UnsupportedArchiveError, match="no suitable distribution"):
            manager.download(Source(kind="pip", locator="py-skill"))

    def test_release_without_files(self, settings: Settings, mock_http: ClientFactory) -> None:
        client = mock_http(
            _routes(
                {
                    "https://pypi.org/pypi/py-skill/json": httpx.Response(
                        200, json=_pypi_metadata([])
                    )
                }
            )
        )
        manager = PipPackageManager.create(settings, client)

        with pytest.raises(VersionNotFoundError):
            manager.download(Source(kind="pip", locator="py-skill"), "0.1.0")

    def test_custom_index(self, settings: Settings, mock_http: ClientFactory) -> None:
        seen: list[str] = []
        client = mock_http(
            _routes(
                {
                    "https://pypi.internal/pypi/py-skill/json": httpx.Response(
                        200, json={"info": {"version": "1.0.0"}}
                    )
                },
                seen,
            )
        )
        manager = PipPackageManager.create(settings, client)
        source = Source(kind="pip", locator="py-skill", options={"index": "https://pypi.internal"})

        assert manager.latest_version(source) == "1.0.0"
        assert seen == ["https://pypi.internal/pypi/py-skill/json"]


class TestCargoPackageManager:
    """Tests for CargoPackageManager."""

    @pytest.fixture
    def crate_metadata(self) -> dict:
        return {
            "crate": {"name": "rs-skill", "max_version": "0.2.0"},
            "versions": [
                {"num": "0.2.0", "dl_path": "/api/v1/crates/rs-skill/0.2.0/download"},
                {"num": "0.1.0", "dl_path": "/api/v1/crates/rs-skill/0.1.0/download"},
            ],
        }

    def test_latest_version(
        self, settings: Settings, mock_http: ClientFactory, crate_metadata: dict
    ) -> None:
        client = mock_http(
            _routes(
                {
                    "https://crates.io/api/v1/crates/rs-skill": httpx.Response(
                        200, json=crate_metadata
                    )
                }
            )
        )
        manager = CargoPackageManager.create(settings, client)

        assert manager.latest_version(Source(kind="cargo", locator="rs-skill")) == "0.2.0"

    def test_download_uses_dl_path(
        self,
        settings: Settings,
        mock_http: ClientFactory,
        make_tar_gz: Callable[..., bytes],
        crate_metadata: dict,
    ) -> None:
        """Test the registry-relative download path is joined to the root."""
        client = mock_http(
            _routes(
                {
                    "https://crates.io/api/v1/crates/rs-skill": httpx.Response(
                        200, json=crate_metadata
                    ),
                    "https://crates.io/api/v1/crates/rs-skill/0.1.0/download": httpx.Response(
                        200, content=make_tar_gz({"SKILL.md": "rs"}, prefix="rs-skill-0.1.0/")
                    ),
                }
            )
        )
        manager = CargoPackageManager.create(settings, client)

        with manager.download(Source(kind="cargo", locator="rs-skill"), "0.1.0") as download:
            assert download.resolved_version == "0.1.0"
            assert (download.local_path / "SKILL.md").read_text() == "rs"

    def test_download_follows_redirect(
        self,
        settings: Settings,
        make_tar_gz: Callable[..., bytes],
        crate_metadata: dict,
    ) -> None:
        """Test download redirects to static storage are followed."""
        routes = {
            "https://crates.io/api/v1/crates/rs-skill": httpx.Response(200, json=crate_metadata),
            "https://crates.io/api/v1/crates/rs-skill/0.2.0/download": httpx.Response(
                302, headers={"Location": "https://static.crates.io/rs-skill-0.2.0.crate"}
            ),
            "https://static.crates.io/rs-skill-0.2.0.crate": httpx.Response(
                200, content=make_tar_gz({"SKILL.md": "rs2"}, prefix="rs-skill-0.2.0/")
            ),
        }
        client = httpx.Client(transport=httpx.MockTransport(_routes(routes)), follow_redirects=True)
        manager = CargoPackageManager.create(settings, client)

        try:
            with manager.download(Source(kind="cargo", locator="rs-skill")) as download:
                assert (download.local_path / "SKILL.md").read_text() == "rs2"
        finally:
            client.close()

    def test_unknown_version(
        self, settings: Settings, mock_http: ClientFactory, crate_metadata: dict
    ) -> None:
        client = mock_http(
            _routes(
                {
                    "https://crates.io/api/v1/crates/rs-skill": httpx.Response(
                        200, json=crate_metadata
                    )
                }
            )
        )
        manager = CargoPackageManager.create(settings, client)

        with pytest.raises(VersionNotFoundError, match="crate rs-skill"):
            manager.download(Source(kind="cargo", locator="rs-skill"), "9.0.0")

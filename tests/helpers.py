"""Fakes and archive builders shared by the tests."""

import json
import subprocess
import zipfile
from pathlib import Path

from minecraft_plugin_builder.config import MODRINTH_API, PLATFORM_REPOSITORIES

PAPER_REPO = PLATFORM_REPOSITORIES["paper"]
SNAPSHOT_TIMESTAMP = "20250701.120000"
SNAPSHOT_BUILD = "42"


class FakeResponse:
    """Just enough of requests.Response for the API clients."""

    def __init__(self, status_code=200, json_data=None, text=None, content=None, reason="OK"):
        self.status_code = status_code
        self.reason = reason if status_code < 400 else "Not Found"
        if text is None:
            text = json.dumps(json_data) if json_data is not None else ""
        self.text = text
        self.content = content if content is not None else text.encode("utf-8")

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        return json.loads(self.text)


class FakeSession:
    """Routes GET requests by URL; unknown URLs answer 404."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params, timeout))
        route = self.routes.get(url)
        if route is None:
            return FakeResponse(status_code=404)
        if isinstance(route, Exception):
            raise route
        return route

    def urls(self):
        return [url for url, _, _ in self.calls]


def make_jar(path, entries):
    """Write a zip archive with the given {name: str | bytes} entries."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return path


def plugin_jar_bytes(tmp_path, name, extra=None):
    """Bytes of a plugin jar whose plugin.yml declares the given name."""
    entries = {"plugin.yml": f"name: {name}\nversion: '1.0'\nmain: org.{name.lower()}.Plugin\n"}
    entries.update(extra or {})
    jar = make_jar(tmp_path / "fixtures" / f"{name}.jar", entries)
    return jar.read_bytes()


def snapshot_metadata(version, artifact_id="paper-api"):
    return FakeResponse(text=f"""<?xml version="1.0" encoding="UTF-8"?>
<metadata modelVersion="1.1.0">
  <groupId>io.papermc.paper</groupId>
  <artifactId>{artifact_id}</artifactId>
  <version>{version}-R0.1-SNAPSHOT</version>
  <versioning>
    <snapshot>
      <timestamp>{SNAPSHOT_TIMESTAMP}</timestamp>
      <buildNumber>{SNAPSHOT_BUILD}</buildNumber>
    </snapshot>
    <lastUpdated>20250701120000</lastUpdated>
  </versioning>
</metadata>
""")


def snapshot_routes(version, jar_bytes=b"platform-jar", repo=PAPER_REPO):
    """Routes serving one platform snapshot version."""
    base = f"{repo}/{version}-R0.1-SNAPSHOT"
    jar_name = f"paper-api-{version}-R0.1-{SNAPSHOT_TIMESTAMP}-{SNAPSHOT_BUILD}.jar"
    return {
        f"{base}/maven-metadata.xml": snapshot_metadata(version),
        f"{base}/{jar_name}": FakeResponse(content=jar_bytes),
    }


def modrinth_version(number, game_versions=("1.21.7",), loaders=("paper",), version_type="release",
                     slug="libx"):
    return {
        "id": f"{slug}-{number}",
        "version_number": number,
        "version_type": version_type,
        "loaders": list(loaders),
        "game_versions": list(game_versions),
        "files": [{
            "filename": f"{slug}-{number}.jar",
            "url": f"https://cdn.modrinth.com/data/{slug}/{number}.jar",
            "primary": True,
            "size": 2048,
        }],
    }


def modrinth_routes(slug, versions, jar_bytes=b"", title=None):
    """Routes for a Modrinth project, its version list and the version files."""
    routes = {
        f"{MODRINTH_API}/project/{slug}": FakeResponse(json_data={
            "id": f"id-{slug}",
            "slug": slug,
            "title": title or slug.capitalize(),
            "description": f"The {slug} plugin",
            "game_versions": sorted({v for version in versions for v in version["game_versions"]}),
            "downloads": 1234,
        }),
        f"{MODRINTH_API}/project/{slug}/version": FakeResponse(json_data=versions),
    }
    for version in versions:
        routes[f"{MODRINTH_API}/project/{slug}/version/{version['id']}"] = FakeResponse(json_data=version)
        for file in version["files"]:
            routes[file["url"]] = FakeResponse(content=jar_bytes)
    return routes




def fake_toolchain(command, cwd=None, capture_output=False, text=False, timeout=None):
    """Stand-in for subprocess.run: javac succeeds, jar zips the build directory."""
    if command[0] == "jar":
        _, _, archive, _, build_dir, _ = command
        with zipfile.ZipFile(archive, "w") as zf:
            for path in sorted(Path(build_dir).rglob("*")):
                if path.is_file():
                    zf.write(path, path.relative_to(build_dir).as_posix())
    return subprocess.CompletedProcess(command, 0, stdout="", stderr="")

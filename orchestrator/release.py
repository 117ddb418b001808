import copy
import json
from collections import OrderedDict
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from packaging.version import InvalidVersion, Version

from orchestrator.constants import RELEASE_FILENAME, STANDARD_JSON_FORMAT
from orchestrator.context import is_local

JSON_MARKER = ".json"

Manifest = Dict


def _load_json(filepath: Path) -> dict:
    """Loads a JSON file."""
    with open(filepath, "r") as file:
        return json.load(file)


def get_deployment_data(network_dir: Path) -> Dict[str, str]:
    """
    Returns the deployment name -> address mapping of a network deployments directory.
    Files are read in name order; a name seen twice keeps the address read last.
    """
    merged = dict()
    for filepath in sorted(Path(network_dir).iterdir()):
        if JSON_MARKER not in filepath.name or not filepath.is_file():
            continue
        name = filepath.name.split(JSON_MARKER)[0]
        data = _load_json(filepath)
        if not isinstance(data, dict) or not data.get("address"):
            continue  # e.g. .migrations.json
        merged[name] = data["address"]

    return OrderedDict((name, merged[name]) for name in sorted(merged))


def list_releases(releases_dir: Path) -> List[Version]:
    """Returns the versions released so far, oldest first."""
    releases_dir = Path(releases_dir)
    if not releases_dir.exists():
        return list()

    versions = list()
    for entry in releases_dir.iterdir():
        if entry.name.startswith(".") or not entry.is_dir():
            continue  # e.g. .DS_Store
        try:
            versions.append(Version(entry.name))
        except InvalidVersion:
            print(f"(!) Ignoring '{entry.name}' in {releases_dir}: not a release version")
    return sorted(versions)


def release_filepath(releases_dir: Path, version: str) -> Path:
    return Path(releases_dir) / version / RELEASE_FILENAME


def _release_dirname(releases_dir: Path, version: Version) -> str:
    # directory names may not be normalized (e.g. "v1.2.0")
    for entry in Path(releases_dir).iterdir():
        try:
            if not entry.name.startswith(".") and Version(entry.name) == version:
                return entry.name
        except InvalidVersion:
            continue
    return str(version)


def get_previous_release(releases_dir: Path) -> Manifest:
    """Returns the manifest of the most recent release, or an empty manifest."""
    versions = list_releases(releases_dir)
    if not versions:
        return dict()

    latest = _release_dirname(releases_dir, versions[-1])
    filepath = release_filepath(releases_dir, latest)
    if not filepath.exists():
        return dict()
    return _load_json(filepath)


def write_release(manifest: Manifest, releases_dir: Path) -> Path:
    filepath = release_filepath(releases_dir, manifest["version"])
    filepath.parent.mkdir(parents=True, exist_ok=True)
    with open(filepath, "w") as file:
        json.dump(manifest, file, **STANDARD_JSON_FORMAT)
    return filepath


def create_release_for(
    network: str, version: str, deployments_dir: Path, releases_dir: Path
) -> Path:
    """Adds the deployments of `network` to the manifest of release `version`."""
    deploy_data = get_deployment_data(Path(deployments_dir) / network)

    previous = get_previous_release(releases_dir)
    if previous.get("version") == version:
        # same release: update it with the new deployments
        manifest = previous
    else:
        latest = previous.get("version")
        if latest and Version(latest) > Version(version):
            print(f"(!) Release {version} is older than the latest release {latest}")
        # new release: start from a copy of the latest one
        manifest = copy.deepcopy(previous)
        manifest["version"] = version

    networks = manifest.setdefault("networks", dict())
    networks[network] = deploy_data

    filepath = write_release(manifest=manifest, releases_dir=releases_dir)
    print(f"{network} release {version} is created successfully!")
    return filepath


def release_networks(deployments_dir: Path) -> List[str]:
    """Returns the networks with deployments, local networks and forks excluded."""
    deployments_dir = Path(deployments_dir)
    if not deployments_dir.is_dir():
        return list()
    return sorted(
        entry.name
        for entry in deployments_dir.iterdir()
        if entry.is_dir() and not entry.name.startswith(".") and not is_local(entry.name)
    )


def create_release(
    version: str,
    deployments_dir: Path,
    releases_dir: Path,
    networks: Optional[Iterable[str]] = None,
) -> Dict[str, Exception]:
    """
    Creates or updates release `version` with every network's deployments.
    Returns the failure of each network that could not be released.
    """
    Version(version)  # raises InvalidVersion
    if networks is None:
        networks = release_networks(deployments_dir)
        if not networks:
            print(f"(!) No deployments to release in {deployments_dir}")

    failures = dict()
    for network in networks:
        try:
            create_release_for(
                network=network,
                version=version,
                deployments_dir=deployments_dir,
                releases_dir=releases_dir,
            )
        except (OSError, ValueError, KeyError) as e:
            print(f"(!) Failed to create {network} release {version}: {e!r}")
            failures[network] = e
    return failures

"""Client commands: init, publish and versions.

Publish flow:
1. Read and validate skill.json
2. Collect files (path safety checks)
3. Build the ustar archive and its SHA-256
4. Refuse versions already in the local ledger
5. Write .skillhub/artifacts/<slug>-<version>.tar and record it
6. Optionally publish to a registry (upload, register, set default)
"""

import argparse
import json
from dataclasses import dataclass
from pathlib import Path

from .archive.builder import Archive, artifact_filename, build_archive
from .audit import AuditLogger
from .config import Settings
from .errors import DuplicateVersionError, NotVerifiedError, SkillHubError
from .ledger import PublishLedger
from .models.ledger import PublishedSkillVersion
from .models.manifest import MANIFEST_FILE, SkillManifest
from .server.identity import Actor
from .server.registry import PublishResult, SkillRegistry
from .validators.manifest import load_manifest

MANIFEST_TEMPLATE = {
    "name": "Weather Skill",
    "slug": "weather",
    "version": "1.0.0",
    "description": "Get current weather info",
    "author": "username",
    "license": "MIT",
    "entry": "SKILL.md",
    "files": ["SKILL.md"],
}


@dataclass
class PackageResult:
    """What a local publish produced."""

    manifest: SkillManifest
    archive: Archive
    artifact_path: Path
    published: PublishedSkillVersion


@dataclass
class HostedPublishResult:
    """Outcome of publishing an archive to a registry."""

    skill_id: str
    publish: PublishResult
    default_set: bool = False
    default_set_message: str | None = None


def _ledger(base_dir: Path, settings: Settings) -> PublishLedger:
    return PublishLedger(base_dir / settings.workspace_dir / settings.ledger_file)


def init_skill(base_dir: Path) -> Path:
    """Write a template skill.json.

    Raises:
        FileExistsError: If skill.json already exists.
    """
    manifest_path = base_dir / MANIFEST_FILE
    if manifest_path.exists():
        raise FileExistsError(f"{MANIFEST_FILE} already exists in {base_dir}")
    with open(manifest_path, "w") as f:
        json.dump(MANIFEST_TEMPLATE, f, indent=2)
        f.write("\n")
    return manifest_path


def package_skill(
    base_dir: Path,
    settings: Settings,
    changelog: str | None = None,
    mtime: int | None = None,
    audit: AuditLogger | None = None,
) -> PackageResult:
    """Validate, archive and record the skill in base_dir.

    Raises:
        ManifestError: skill.json is invalid.
        PackagingError: A declared path is unsafe or missing.
        DuplicateVersionError: The version is already in the local ledger.
    """
    manifest_path = base_dir / MANIFEST_FILE
    if not manifest_path.exists():
        raise FileNotFoundError(f"{MANIFEST_FILE} not found in {base_dir}")

    manifest = load_manifest(manifest_path)
    archive = build_archive(manifest, base_dir, mtime=mtime, max_bytes=settings.max_artifact_bytes)

    ledger = _ledger(base_dir, settings)
    if ledger.has_version(manifest.slug, manifest.version):
        raise DuplicateVersionError(f"Version {manifest.version} already published locally")

    artifacts_dir = base_dir / settings.workspace_dir / settings.artifacts_dir
    artifacts_dir.mkdir(parents=True, exist_ok=True)
    artifact_path = artifacts_dir / artifact_filename(manifest)
    artifact_path.write_bytes(archive.data)

    published = ledger.record_publish(
        manifest.slug,
        manifest.version,
        content_hash=archive.sha256,
        size_bytes=archive.size_bytes,
        artifact_path=f"{settings.artifacts_dir}/{artifact_path.name}",
        name=manifest.name,
        changelog=changelog,
    )

    if audit:
        audit.log("PACKAGE", slug=manifest.slug, version=manifest.version,
                  hash=archive.sha256, size=archive.size_bytes)

    return PackageResult(manifest=manifest, archive=archive, artifact_path=artifact_path, published=published)


def publish_hosted(
    registry: SkillRegistry,
    actor: Actor,
    manifest: SkillManifest,
    archive: Archive,
    changelog: str | None = None,
    set_default: bool = True,
) -> HostedPublishResult:
    """Upload an archive and register it as a new hosted version.

    The skill is looked up by slug and created when missing. A default that
    cannot be set (the version was rejected) is reported, not raised.
    """
    skill = registry.get_skill_by_slug(actor, manifest.slug)
    if skill is None:
        skill = registry.create_skill(actor, manifest.name, manifest.slug, manifest.description)

    ticket = registry.generate_upload_url(actor, skill.id, manifest.version)
    registry.blob_store.put(ticket.storage_key, archive.data)

    publish = registry.publish_version(
        actor,
        skill.id,
        manifest.version,
        storage_key=ticket.storage_key,
        content_hash=archive.sha256,
        size_bytes=archive.size_bytes,
        changelog=changelog,
        manifest=manifest.model_dump_json(),
    )

    result = HostedPublishResult(skill_id=skill.id, publish=publish)
    if set_default:
        try:
            registry.set_default_version(actor, skill.id, publish.version_id)
            result.default_set = True
        except NotVerifiedError as e:
            result.default_set_message = str(e)
    return result


def list_local_versions(base_dir: Path, settings: Settings) -> tuple[SkillManifest, list[PublishedSkillVersion]]:
    """Return the manifest and its locally recorded versions, lowest first."""
    manifest_path = base_dir / MANIFEST_FILE
    if not manifest_path.exists():
        raise FileNotFoundError(f"{MANIFEST_FILE} not found in {base_dir}")
    manifest = load_manifest(manifest_path)
    return manifest, _ledger(base_dir, settings).list_versions(manifest.slug)


def _cmd_init(args: argparse.Namespace, settings: Settings) -> None:
    path = init_skill(args.dir)
    print(f"Created {MANIFEST_FILE} template: {path}")


def _cmd_publish(args: argparse.Namespace, settings: Settings) -> None:
    result = package_skill(args.dir, settings, changelog=args.changelog)
    print("Skill packaged successfully")
    print(f"  Artifact: {result.artifact_path}")
    print(f"  Size: {result.archive.size_bytes:,} bytes")
    print(f"  SHA256: {result.archive.sha256}")

    if not args.remote:
        return

    if not settings.actor_id:
        raise SystemExit("Error: remote publish requires SKILLHUB_ACTOR_ID")
    registry = SkillRegistry.from_settings(settings)
    hosted = publish_hosted(
        registry,
        Actor(settings.actor_id),
        result.manifest,
        result.archive,
        changelog=args.changelog,
        set_default=not args.no_default,
    )
    print(f"Version {result.manifest.version} published: {hosted.publish.status}")
    for error in hosted.publish.verification.errors:
        print(f"  - {error}")
    if hosted.default_set:
        print("  Default: updated")
    elif hosted.default_set_message:
        print(f"  Default: not updated ({hosted.default_set_message})")


def _cmd_versions(args: argparse.Namespace, settings: Settings) -> None:
    manifest, versions = list_local_versions(args.dir, settings)
    if not versions:
        print("No published versions found for this skill.")
        print(f"  Current manifest version: {manifest.version}")
        return
    print(f"Published versions for {manifest.name} ({manifest.slug}):")
    for version in versions:
        print(f"  {version.version}")
        print(f"    Published: {version.published_at.isoformat()}")
        print(f"    SHA256: {version.hash}")
        print(f"    Size: {version.size_bytes:,} bytes")
        print(f"    Artifact: {args.dir / settings.workspace_dir / version.artifact_path}")


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the skillhub client."""
    parser = argparse.ArgumentParser(description="Package and publish skills")
    parser.add_argument(
        "--dir",
        type=Path,
        default=Path.cwd(),
        help="Skill directory containing skill.json (default: current directory)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init", help="Create a skill.json template")

    publish_parser = subparsers.add_parser("publish", help="Package the skill and record it locally")
    publish_parser.add_argument("--changelog", default=None, help="Release notes for this version")
    publish_parser.add_argument(
        "--remote",
        action="store_true",
        help="Also publish to the registry configured by SKILLHUB_* settings",
    )
    publish_parser.add_argument(
        "--no-default",
        action="store_true",
        help="Do not make the published version the default",
    )

    subparsers.add_parser("versions", help="List locally published versions")

    args = parser.parse_args(argv)
    settings = Settings()
    commands = {"init": _cmd_init, "publish": _cmd_publish, "versions": _cmd_versions}

    try:
        commands[args.command](args, settings)
    except (SkillHubError, FileNotFoundError, FileExistsError) as e:
        print(f"Error: {e}")
        raise SystemExit(1)


if __name__ == "__main__":
    main()

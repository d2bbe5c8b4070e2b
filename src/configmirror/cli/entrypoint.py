"""The main CLI entrypoint for config-mirror.

Registry management (report, create-structure, migrate, add-folder, add-file, validate, list, list-files) and the manual sync
passes (push, pull, sync-local).

:Module: configmirror.cli.entrypoint
:Copyright: (c) 2024 by Gemini Trust Company, LLC., see AUTHORS for more info
:License: See the LICENSE file for details
:Author: Mike Grima <michael.grima@gemini.com>
"""
from typing import Optional

import click
from click import Context
from marshmallow import ValidationError

from configmirror.cli.utils import CliState, MirrorSyncCommand
from configmirror.registry.registry import FileExistsInFolderError, FolderExistsError, FolderNotFoundError
from configmirror.sync.decisions import ReconciliationStatus
from configmirror.sync.passes import pull_to_local, pull_to_vcs, push_to_object_store, report as three_way_report
from configmirror.utils.config_schema import ENVIRONMENTS


@click.group()
@click.option("--registry", "registry_path", type=click.Path(dir_okay=False), required=False, help="The folders.json registry. Defaults to RegistryPath.")
@click.option("--base-path", type=click.Path(file_okay=False), required=False, help="The local base path. Defaults to LocalBasePath.")
@click.pass_context
def cli(ctx: Context, registry_path: Optional[str], base_path: Optional[str]) -> None:
    """config-mirror keeps JSON configuration files mirrored between local folders, S3, and GitHub."""
    ctx.obj = CliState(registry_path=registry_path, base_path=base_path)


@cli.command()
@click.option("--environment", type=click.Choice(ENVIRONMENTS + ("all",)), default="all", show_default=True, help="The environment to report on")
@click.option("--fail-on-drift", is_flag=True, default=False, help="Exit non-zero if anything is out of sync, in conflict, or unreadable")
@click.pass_context
def report(ctx: Context, environment: str, fail_on_drift: bool) -> None:
    """Compares every tracked file across local, S3, and GitHub."""
    environments = ENVIRONMENTS if environment == "all" else (environment,)
    reports = three_way_report(ctx.obj.sync_context(needs_vcs=True), environments=environments)

    drifted = [item for item in reports if item.error or item.result.status != ReconciliationStatus.IN_SYNC]
    if fail_on_drift and drifted:
        ctx.exit(1)


@cli.command()
@click.pass_context
def create_structure(ctx: Context) -> None:
    """Creates the local directory of every folder for each environment."""
    registry = ctx.obj.load_registry()
    created = registry.create_structure(ctx.obj.local_backend())
    click.echo(f"[📁] Created {len(created)} director{'y' if len(created) == 1 else 'ies'}.")


@cli.command()
@click.pass_context
def migrate(ctx: Context) -> None:
    """Rewrites legacy local_path/s3_prefix folders into the per-environment fields."""
    registry = ctx.obj.load_registry(validate=False)
    migrated = registry.migrate()
    if not migrated:
        click.echo("[🆗] Nothing to migrate.")
        return

    registry.save()
    click.echo(f"[🔄] Migrated: {', '.join(migrated)}")


@cli.command()
@click.argument("name")
@click.argument("description")
@click.argument("s3_prefix")
@click.option("--local-root", default="app-config", show_default=True, help="The local directory that folders are created under")
@click.pass_context
def add_folder(ctx: Context, name: str, description: str, s3_prefix: str, local_root: str) -> None:
    """Adds a folder to the registry and creates its local directories."""
    registry = ctx.obj.load_registry()
    try:
        registry.add_folder(name, description, s3_prefix, local_root=local_root)
    except FolderExistsError as exc:
        raise click.ClickException(f"[💥] {exc}") from exc

    registry.save()
    registry.create_structure(ctx.obj.local_backend())
    click.echo(f"[✅] Folder {name} added.")


@cli.command()
@click.argument("folder")
@click.argument("file_name")
@click.argument("description")
@click.pass_context
def add_file(ctx: Context, folder: str, file_name: str, description: str) -> None:
    """Starts tracking a file in a folder."""
    registry = ctx.obj.load_registry()
    try:
        registry.add_file(folder, file_name, description)
    except (FolderNotFoundError, FileExistsInFolderError) as exc:
        raise click.ClickException(f"[💥] {exc}") from exc
    except ValidationError as exc:
        raise click.ClickException(f"[💥] Invalid file name: {file_name}: {exc.messages}") from exc

    registry.save()
    click.echo(f"[✅] File {file_name} added to folder {folder}.")


@cli.command()
@click.pass_context
def validate(ctx: Context) -> None:
    """Validates the folder registry."""
    ctx.obj.load_registry()
    click.echo("[✅] The folder registry is valid.")


@cli.command(name="list")
@click.pass_context
def list_folders(ctx: Context) -> None:
    """Lists the folders in the registry."""
    registry = ctx.obj.load_registry(validate=False)
    for folder in registry.folders:
        click.echo(f"📁 {folder.name}: {folder.description}")
        for environment in ENVIRONMENTS:
            click.echo(f"   {environment}: local={folder.local_path_for(environment)} s3={folder.s3_prefix_for(environment)}")
        click.echo(f"   files: {len(folder.files)}")


@cli.command()
@click.argument("folder")
@click.pass_context
def list_files(ctx: Context, folder: str) -> None:
    """Lists the files a folder tracks."""
    registry = ctx.obj.load_registry(validate=False)
    try:
        files = registry.list_files(folder)
    except FolderNotFoundError as exc:
        raise click.ClickException(f"[💥] {exc}") from exc

    for tracked in files:
        click.echo(f"📄 {tracked.name}: {tracked.description}")


@cli.command(cls=MirrorSyncCommand)
@click.option("--commit-sha", envvar="GITHUB_SHA", default=None, help="The commit being pushed. Recorded in the S3 metadata.")
@click.pass_context
def push(ctx: Context, environment: str, commit: bool, delete_missing: bool, commit_sha: Optional[str], **kwargs) -> None:  # noqa # pylint: disable=unused-argument
    """Pushes the local files to S3."""
    summary = push_to_object_store(ctx.obj.sync_context(needs_vcs=False, commit_sha=commit_sha), environment, commit=commit, delete_missing=delete_missing)
    ctx.exit(summary.exit_code)


@cli.command(cls=MirrorSyncCommand)
@click.pass_context
def pull(ctx: Context, environment: str, commit: bool, delete_missing: bool, **kwargs) -> None:  # noqa # pylint: disable=unused-argument
    """Pulls S3 into the environment's GitHub branch as a single commit."""
    summary = pull_to_vcs(ctx.obj.sync_context(needs_vcs=True), environment, commit=commit, delete_missing=delete_missing)
    ctx.exit(summary.exit_code)


@cli.command(cls=MirrorSyncCommand)
@click.pass_context
def sync_local(ctx: Context, environment: str, commit: bool, delete_missing: bool, **kwargs) -> None:  # noqa # pylint: disable=unused-argument
    """Pulls S3 into the local folders."""
    summary = pull_to_local(ctx.obj.sync_context(needs_vcs=False), environment, commit=commit, delete_missing=delete_missing)
    ctx.exit(summary.exit_code)

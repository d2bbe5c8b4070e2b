"""CLI utility classes

:Module: configmirror.cli.utils
:Copyright: (c) 2024 by Gemini Trust Company, LLC., see AUTHORS for more info
:License: See the LICENSE file for details
:Author: Mike Grima <michael.grima@gemini.com>
"""
from typing import Any, Optional

import click
from click import Command, Context

from configmirror.backends.local import LocalBackend
from configmirror.registry.registry import FolderRegistry, RegistryError, RegistryValidationError
from configmirror.sync.context import build_sync_context, SyncConfig, SyncContext
from configmirror.utils.config_schema import ENVIRONMENTS
from configmirror.utils.configuration import MIRROR_CONFIGURATION
from configmirror.utils.secrets import resolve_github_token


class CliState:
    """What the `cli` group hands to its commands via `ctx.obj`. Everything is built lazily so that registry-only commands
    never need AWS or GitHub."""

    def __init__(self, registry_path: Optional[str] = None, base_path: Optional[str] = None):
        self.registry_path = registry_path
        self.base_path = base_path

    def sync_config(self, commit_sha: Optional[str] = None) -> SyncConfig:
        """The SyncConfig from the configuration with the command line overrides applied."""
        return SyncConfig.from_configuration(
            MIRROR_CONFIGURATION.mirror_section, registry_path=self.registry_path, local_base_path=self.base_path, commit_sha=commit_sha
        )

    def load_registry(self, validate: bool = True) -> FolderRegistry:
        """Loads the registry. Problems are turned into a ClickException."""
        try:
            registry = FolderRegistry.load(self.sync_config().registry_path)
            if validate:
                registry.validate()

        except RegistryValidationError as exc:
            raise click.ClickException("[💥] The folder registry is invalid:\n" + "\n".join(f"   - {error}" for error in exc.errors)) from exc

        except RegistryError as exc:
            raise click.ClickException(f"[💥] {exc}") from exc

        return registry

    def local_backend(self) -> LocalBackend:
        """The local backend at the configured (or overridden) base path."""
        return LocalBackend(self.sync_config().local_base_path)

    def sync_context(self, needs_vcs: bool, commit_sha: Optional[str] = None) -> SyncContext:
        """The full SyncContext with the validated registry."""
        return build_sync_context(
            self.sync_config(commit_sha=commit_sha), github_token=resolve_github_token() if needs_vcs else None, registry=self.load_registry()
        )


class MirrorSyncCommand(Command):
    """
    Click command class for the sync passes. It adds the options every pass needs:
        --environment (staging or production), --commit (nothing is written without it), and --delete-missing.

    This is used as follows:
    ```
        @cli.command(cls=MirrorSyncCommand)
        @click.pass_context
        def some_pass(ctx: Context, environment: str, commit: bool, delete_missing: bool, **kwargs) -> None:
            ...
    ```
    """

    def __init__(self, name, callback, **kwargs):
        """This is the overridden __init__ that will set up the parameters that we need."""
        params = kwargs.pop("params", [])

        params += [
            click.Option(["--environment"], required=True, type=click.Choice(ENVIRONMENTS), help="The environment to sync"),
            click.Option(["--commit"], is_flag=True, default=False, show_default=True, help="Must be supplied for changes to be made"),
            click.Option(
                ["--delete-missing"], is_flag=True, default=False, show_default=True, help="Delete destination files whose source no longer exists"
            ),
        ]
        super().__init__(name, callback=callback, params=params, **kwargs)

    def invoke(self, ctx: Context) -> Any:
        """Warn loudly about dry runs before running the pass."""
        if not ctx.params["commit"]:
            click.echo("[⚠️] Commit flag is disabled: not writing anything!", err=True)

        return super().invoke(ctx)

"""config-mirror's Secrets Management module

The secrets manager is a singleton that fetches the AWS Secrets Manager secret for this execution. The GitHub token used by the
VCS backend lives there.

:Module: configmirror.utils.secrets
:Copyright: (c) 2024 by Gemini Trust Company, LLC., see AUTHORS for more info
:License: See the LICENSE file for details
:Author: Mike Grima <michael.grima@gemini.com>
"""
import json
import os
from typing import Any, Dict

import boto3

from configmirror.utils.configuration import MIRROR_CONFIGURATION
from configmirror.utils.logging import LOGGER

# pylint: disable=pointless-string-statement
"""Mapping of the Secrets Dict:
{
    "GitHubToken": "the token used against the GitHub REST API",
    "...": "anything else is ignored"
}
"""

GITHUB_TOKEN_SECRET_KEY = "GitHubToken"


class SecretsConfigurationMissingError(Exception):
    """Raised if the configuration is missing the SecretsManager field in the MIRROR configuration section."""


class GitHubTokenMissingError(Exception):
    """Raised if there is no GitHub token in the secret nor in the GITHUB_TOKEN environment variable."""


class SecretsManager:
    """This is the main secrets management class."""

    def __init__(self):
        """Default constructor"""
        self._secrets = None

    def load_secrets(self) -> None:
        """
        This will perform the work to load the secret value from AWS Secrets manager.

        Note: If there are exceptions encountered fetching the secret, it will raise up the stack.
        """
        configuration = MIRROR_CONFIGURATION.config["MIRROR"].get("SecretsManager")
        if not configuration:
            raise SecretsConfigurationMissingError()

        LOGGER.debug(f"[🤐] Loading secrets from Secrets Manager ID in Region: {configuration['SecretId']}/{configuration['SecretRegion']}")

        client = boto3.client("secretsmanager", configuration["SecretRegion"])
        loaded = client.get_secret_value(SecretId=configuration["SecretId"])
        self._secrets = json.loads(loaded["SecretString"])
        LOGGER.debug("[🔑] Secrets loaded successfully")

    @property
    def secrets(self) -> Dict[str, Any]:
        """Fetch the Secret Dictionary. This will load the secrets if not already loaded."""
        if not self._secrets:
            self.load_secrets()

        return self._secrets


SECRETS_MANAGER = SecretsManager()


def resolve_github_token() -> str:
    """Returns the GitHub token from Secrets Manager if configured, otherwise from the GITHUB_TOKEN environment variable."""
    if MIRROR_CONFIGURATION.config["MIRROR"].get("SecretsManager"):
        try:
            return SECRETS_MANAGER.secrets[GITHUB_TOKEN_SECRET_KEY]
        except KeyError as exc:
            LOGGER.error(f"[💥] The secret is missing the `{GITHUB_TOKEN_SECRET_KEY}` key.")
            raise GitHubTokenMissingError() from exc

    token = os.environ.get("GITHUB_TOKEN")
    if not token:
        LOGGER.error("[💥] No GitHub token found. Configure `SecretsManager` or set the GITHUB_TOKEN environment variable.")
        raise GitHubTokenMissingError()

    return token

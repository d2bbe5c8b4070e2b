"""config-mirror's configuration schema

This defines the Marshmallow schema for the YAML configuration. It makes sure that the `MIRROR` section exists and
has everything the sync passes and the Lambda handlers need.

:Module: configmirror.utils.config_schema
:Copyright: (c) 2024 by Gemini Trust Company, LLC., see AUTHORS for more info
:License: See the LICENSE file for details
:Author: Mike Grima <michael.grima@gemini.com>
"""
from typing import Any, Dict

from marshmallow import Schema, fields, INCLUDE, validate, validates_schema, ValidationError

from configmirror.utils.niceties import get_all_regions

aws_regions = get_all_regions()

ENVIRONMENTS = ("staging", "production")


class SecretsManager(Schema):
    """Nested schema for the AWS Secrets Manager secret: the secret ID and the region it resides in."""

    secret_id = fields.String(required=True, data_key="SecretId")
    secret_region = fields.String(required=True, validate=validate.OneOf(aws_regions), data_key="SecretRegion")


class MirrorSchema(Schema):
    """This is the main schema for the `MIRROR` section."""

    # Required Fields:
    # The bucket that holds the mirrored JSON files, and the region it resides in:
    bucket = fields.String(required=True, data_key="Bucket")
    region = fields.String(required=True, validate=validate.OneOf(aws_regions), data_key="Region")

    # The GitHub repository that the files are mirrored into:
    repo_owner = fields.String(required=True, data_key="RepoOwner")
    repo_name = fields.String(required=True, data_key="RepoName")

    # Optional fields:
    # Which branch receives the files for each environment:
    branches = fields.Dict(
        keys=fields.String(validate=validate.OneOf(ENVIRONMENTS)),
        values=fields.String(),
        required=False,
        load_default={"staging": "staging", "production": "main"},
        data_key="Branches",
    )
    registry_path = fields.String(required=False, load_default="config/folders.json", data_key="RegistryPath")
    local_base_path = fields.String(required=False, load_default=".", data_key="LocalBasePath")

    # Loop suppression tuning. A synced-at timestamp inside this window makes the decision engine skip:
    suppression_window_seconds = fields.Integer(required=False, load_default=300, validate=validate.Range(min=0), data_key="SuppressionWindowSeconds")
    # This is the `{SyncSource}-{environment}` value stamped in the synced-from metadata:
    sync_source = fields.String(required=False, load_default="github", data_key="SyncSource")
    github_api_url = fields.Url(required=False, load_default="https://api.github.com", schemes={"https"}, data_key="GitHubApiUrl")

    # Secrets Manager secret that holds the GitHub token (key: `GitHubToken`). If not set, the GITHUB_TOKEN env var is used:
    secrets_manager = fields.Nested(SecretsManager(), required=False, data_key="SecretsManager")

    # Log Level:
    log_level = fields.String(
        required=False, load_default="INFO", validate=validate.OneOf({"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET"}), data_key="LogLevel"
    )
    # Dictionary to override log levels for 3rd party loggers. This is the name of the log and the level.
    third_party_logger_levels = fields.Dict(required=False, data_key="ThirdPartyLoggerLevels")

    @validates_schema(pass_original=True)
    def verify_schema(self, data: Dict[str, Any], original_data: Dict[str, Any], **kwargs) -> None:  # pylint: disable=unused-argument  # noqa
        """Both environments need a branch if the Branches field is overridden."""
        errors = {}
        missing = [env for env in ENVIRONMENTS if env not in data.get("branches", {})]
        if missing:
            errors["Branches"] = [f"A branch must be defined for every environment. Missing: {', '.join(missing)}."]

        if errors:
            raise ValidationError(errors)


class BaseConfigurationSchema(Schema):
    """The base configuration Schema for config-mirror"""

    # Required fields:
    mirror = fields.Nested(MirrorSchema, required=True, data_key="MIRROR")

    class Meta:
        """Meta properties on the Schema used by Marshmallow"""

        unknown = INCLUDE  # Other sections are fine -- we only care that we got the required values

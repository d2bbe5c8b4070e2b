"""Marshmallow schemas for the folder registry (folders.json)

The registry file uses snake_case keys, so there are no data_keys here.

:Module: configmirror.registry.schemas
:Copyright: (c) 2024 by Gemini Trust Company, LLC., see AUTHORS for more info
:License: See the LICENSE file for details
:Author: Mike Grima <michael.grima@gemini.com>
"""
from marshmallow import Schema, fields, INCLUDE, validate

MONITORED_SUFFIX = ".json"


class TrackedFileSchema(Schema):
    """A file that is mirrored. It must be a plain `.json` file name (no directories)."""

    name = fields.String(
        required=True,
        validate=validate.Regexp(r"^[^/]+\.json$", error="Tracked files must be plain file names that end in .json."),
    )
    description = fields.String(required=False, load_default="")

    class Meta:
        """Meta properties on the Schema used by Marshmallow"""

        unknown = INCLUDE


class FolderSchema(Schema):
    """A folder: a group of tracked files that share local paths and S3 prefixes per environment."""

    name = fields.String(required=True, validate=validate.Length(min=1))
    description = fields.String(required=False, load_default="")

    # Per-environment layout:
    local_path_staging = fields.String(required=False)
    local_path_production = fields.String(required=False)
    s3_prefix_staging = fields.String(required=False)
    s3_prefix_production = fields.String(required=False)

    # Legacy unified layout -- these resolve to `{value}/{environment}`:
    local_path = fields.String(required=False)
    s3_prefix = fields.String(required=False)

    files = fields.List(fields.Nested(TrackedFileSchema), required=False, load_default=[])

    class Meta:
        """Meta properties on the Schema used by Marshmallow"""

        unknown = INCLUDE


class RegistrySchema(Schema):
    """The whole document. `environments` and `monitoring` are carried along untouched."""

    folders = fields.List(fields.Nested(FolderSchema), required=True)

    class Meta:
        """Meta properties on the Schema used by Marshmallow"""

        unknown = INCLUDE

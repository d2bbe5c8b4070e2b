"""config-mirror's logger management

All modules log through the one `LOGGER` object defined here: the Lambda handlers, the CLI and the sync passes.

:Module: configmirror.utils.logging
:Copyright: (c) 2024 by Gemini Trust Company, LLC., see AUTHORS for more info
:License: See the LICENSE file for details
:Author: Mike Grima <michael.grima@gemini.com>
"""
import logging

LOGGER = logging.getLogger("configmirror")

# Console handler with the same layout in Lambda and on the CLI:
handler = logging.StreamHandler()
handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(message)s - %(pathname)s - %(funcName)s:%(lineno)i"))
LOGGER.addHandler(handler)

# Documented: https://stackoverflow.com/a/50910770
LOGGER.propagate = False  # Prevents the duplicate log entries from appearing in CloudWatch Logs

# The level is set once the configuration loads (see configmirror.utils.configuration), which also quiets boto and urllib3.

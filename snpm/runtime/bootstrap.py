# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Runtime bootstrap for snpm.

The one-time setup every command goes through before doing real work:
  1. Validate the environment (Python version)
  2. Set up the `snpm.runtime` logger from the global config
  3. Log what we're running on
"""

from pathlib import Path

from snpm.config.schema import GlobalConfig
from snpm.logging.logger import get_logger
from snpm.runtime.environment import check_minimum_python, get_system_info


def bootstrap(config: GlobalConfig) -> None:
    """
    Run the bootstrap sequence.

    Args:
        config: The validated global configuration.
    """
    check_minimum_python()

    log_file = None
    if config.log_file is not None:
        log_file = Path(config.log_file)

    logger = get_logger("snpm.runtime", log_level=config.log_level, log_file=log_file)

    system_info = get_system_info()
    logger.info(
        "snpm bootstrap complete",
        extra={
            "project_name": config.project_name,
            "python_version": system_info.python_version,
            "platform": system_info.platform,
            "architecture": system_info.architecture,
        },
    )

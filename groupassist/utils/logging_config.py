# groupassist/utils/logging_config.py
# GroupAssist: Telegram Group Assistant
# Copyright (C) 2025 Yael Demedetskaya <yaelkroy@gmail.com>
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.
# ==================================================================================================
# === GroupAssist Logging Configuration ===
# ==================================================================================================
# Sets up application-wide logging to both file and console and clears the previous log file
# on startup.
# ==================================================================================================

import logging
import os

from groupassist import config


def setup_logging(log_file_name: str = config.LOG_FILE_NAME, level: int = logging.INFO) -> None:
    """Initializes the logging configuration for the entire application."""

    try:
        if os.path.exists(log_file_name):
            os.remove(log_file_name)
            # logging is not configured yet, so this goes straight to the console
            print(f"INFO: Previous log file '{log_file_name}' removed successfully.")
    except OSError as e:
        print(f"WARNING: Error removing previous log file '{log_file_name}': {e}")

    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(lineno)d - %(message)s'
    logging.basicConfig(
        format=log_format,
        level=level,
        handlers=[
            logging.FileHandler(log_file_name, encoding='utf-8'),
            logging.StreamHandler()
        ]
    )

    # httpx logs every Bot API request at INFO, which would include the token in the URL
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger(__name__).info(f"Logging configured (file: {log_file_name}).")

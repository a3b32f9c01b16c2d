# Copyright 2025 Olleh Contributors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Logging configuration for the application."""
import logging
import sys
from pathlib import Path
from typing import Optional, TextIO


def setup_logging(log_dir: Optional[Path] = None, debug: bool = False,
                  level: Optional[int] = None, stream: Optional[TextIO] = None) -> None:
    """Setup application logging configuration.

    Args:
        log_dir: Directory to store ``server.log`` in; console only when None
        debug: Enable debug level logging
        level: Explicit level, overriding ``debug``
        stream: Console stream, stdout by default
    """
    if level is None:
        level = logging.DEBUG if debug else logging.INFO

    handlers = [logging.StreamHandler(stream or sys.stdout)]
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_dir / 'server.log'))

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - [%(threadName)s] - %(name)s - %(message)s',
        handlers=handlers,
        force=True,
    )

    logger = logging.getLogger(__name__)
    logger.debug(f"Logging configured. Level: {logging.getLevelName(level)}, Log dir: {log_dir}")

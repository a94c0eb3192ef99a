# Copyright (c) 2024 The Zephyr Project
# SPDX-License-Identifier: Apache-2.0

"""
Logging helpers for command line clients of the binding checker library.

The library modules only ever log through their own module level loggers
(logging.getLogger(__name__)). They never configure logging themselves.
"""

import logging
import os
import sys


def setup_logging(level: int = logging.WARNING) -> None:
    """
    Configure the root logger to print '<program>: <level>: <message>' lines
    to stderr. Meant to be called once by command line tools before any other
    function of this library.
    """
    logging.basicConfig(
        format=f"{os.path.basename(sys.argv[0])}: %(levelname)s: %(message)s",
        level=level,
    )

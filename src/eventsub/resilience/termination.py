"""
Process termination — the fail-fast exit used by every fatal path.

There is no graceful degradation here: a sick host or an exhausted
subscription ends the process and an external supervisor (systemd, docker,
k8s) restarts it. Callers log their own diagnostic first, then call the
terminator with a short reason.

Tests inject a recording terminator instead of the real one.
"""

import logging
import os
import sys
from collections.abc import Callable

logger = logging.getLogger("eventsub.termination")

EXIT_CODE = 1

# Receives a short reason. The default never returns.
Terminator = Callable[[str], None]


def exit_process(reason: str) -> None:
    logger.critical(f"Terminating process (exit {EXIT_CODE}): {reason}")
    logging.shutdown()
    sys.stdout.flush()
    sys.stderr.flush()
    os._exit(EXIT_CODE)

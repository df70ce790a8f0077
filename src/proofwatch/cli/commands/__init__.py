# proofwatch/cli/commands: Command modules for proofwatch CLI.
#
# Each module in this package provides one or more CLI commands.

from .batch_details import batch_details
from .restart import insert_batch, restart
from .status import proof_time, status
from .stuck import stuck

__all__ = [
    # batch_details.py
    "batch_details",
    # restart.py
    "restart",
    "insert_batch",
    # status.py
    "status",
    "proof_time",
    # stuck.py
    "stuck",
]

import logging
from typing import Optional
from rich.console import Console
from rich.logging import RichHandler

def setup_logging(verbosity: int = 0, console: Optional[Console] = None):
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        handlers=[RichHandler(console=console or Console(stderr=True), rich_tracebacks=True, show_path=verbosity >= 2)],
        format="%(message)s",
        force=True,
    )

import logging
from rich.console import Console
from rich.logging import RichHandler

# Diagnostics go to stderr; stdout stays clean for the report
console = Console(stderr=True)


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[
            RichHandler(console=console, rich_tracebacks=True, show_time=False, show_path=False)
        ],
        force=True,
    )
    # Driver chatter is only useful when debugging a single target
    for noisy in ("pymongo", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

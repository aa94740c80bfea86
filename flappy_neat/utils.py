import logging
import os
from typing import Iterable, Optional

from flappy_neat.neat_config import FlappyConfigManager

# Per-frame chatter that floods the console during long runs
DEFAULT_FORBIDDEN_LOGS = ["findfont", "AI Inputs", "No next pipe pair"]


class CustomLogFilter(logging.Filter):
    def __init__(self, forbidden_substrings=None):
        super().__init__()
        # forbidden_substrings is a list of strings that, if found in a log message,
        # will cause the message to be filtered out.
        self.forbidden_substrings = forbidden_substrings or []

    def filter(self, record):
        message = record.getMessage().lower()
        # Return False (filter out) if any forbidden substring is found in the log message.
        for substring in self.forbidden_substrings:
            if substring.lower() in message:
                return False
        return True


def setup_logging(output_dir: Optional[str] = None, forbidden_logs: Optional[Iterable[str]] = None,
                  console_level: int = logging.INFO, config_manager: Optional[FlappyConfigManager] = None):
    logger = logging.getLogger()

    # Remove any existing handlers to prevent duplication
    if logger.hasHandlers():
        logger.handlers.clear()

    logger.setLevel(logging.DEBUG)

    # Create formatter
    formatter = logging.Formatter('%(asctime)s - %(filename)s - %(levelname)s - %(message)s')
    forbidden_logs = list(forbidden_logs) if forbidden_logs is not None else DEFAULT_FORBIDDEN_LOGS

    # Console handler for INFO level and above
    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(CustomLogFilter(forbidden_logs))
    logger.addHandler(console_handler)

    # Create output directory if it doesn't exist
    if output_dir is None:
        config_manager = config_manager or FlappyConfigManager()
        output_dir = config_manager.get_file_paths()["output"]
    os.makedirs(output_dir, exist_ok=True)

    # File handler for DEBUG level and above, unfiltered
    file_handler = logging.FileHandler(os.path.join(output_dir, "debug.log"))
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    logging.info("Logging initiated")
    return logger

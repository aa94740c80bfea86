import logging

import pytest

from flappy_neat.neat_config import FlappyConfigManager
from flappy_neat.utils import CustomLogFilter, setup_logging


def make_record(message):
    return logging.LogRecord("test", logging.INFO, __file__, 1, message, None, None)


def test_custom_log_filter_blocks_forbidden_substrings():
    log_filter = CustomLogFilter(["AI Inputs"])
    assert log_filter.filter(make_record("ai inputs: birdY=0.5")) is False
    assert log_filter.filter(make_record("Game over. Score: 3")) is True


def test_custom_log_filter_without_substrings():
    assert CustomLogFilter().filter(make_record("anything")) is True


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_setup_logging_writes_debug_log(tmp_path, restore_root_logger):
    logger = setup_logging(output_dir=str(tmp_path))

    assert len(logger.handlers) == 2
    logging.getLogger("flappy_neat.controller").debug("debug detail")
    for handler in logger.handlers:
        handler.flush()

    content = (tmp_path / "debug.log").read_text()
    assert "Logging initiated" in content
    assert "debug detail" in content


def test_setup_logging_does_not_duplicate_handlers(tmp_path, restore_root_logger):
    setup_logging(output_dir=str(tmp_path))
    logger = setup_logging(output_dir=str(tmp_path))
    assert len(logger.handlers) == 2


def test_setup_logging_uses_configured_output(tmp_path, restore_root_logger):
    output = tmp_path / "runs"
    path = tmp_path / "config.properties"
    path.write_text(f"[FILES]\nOUTPUT = {output}\n")

    logger = setup_logging(config_manager=FlappyConfigManager(str(path)))
    for handler in logger.handlers:
        handler.flush()

    assert (output / "debug.log").exists(), "Log file should land in the configured output directory."

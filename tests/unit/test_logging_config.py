import logging

import pytest

from logging_config import COMPONENT_LEVELS, get_logger, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    queue_logger = logging.getLogger("OfflineMutationQueue")
    for handler in list(queue_logger.handlers):
        queue_logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def test_development_logging_creates_debug_file(tmp_path, restore_root_logger):
    (tmp_path / "stale.log").write_text("old session", encoding="utf-8")

    log_dir = setup_logging(str(tmp_path), production_mode=False)

    assert log_dir == str(tmp_path)
    assert not (tmp_path / "stale.log").exists()
    assert (tmp_path / "reservations_debug.log").exists()
    assert logging.getLogger("OfflineMutationQueue").level == COMPONENT_LEVELS["OfflineMutationQueue"][1]


def test_production_logging_skips_debug_file(tmp_path, restore_root_logger):
    setup_logging(str(tmp_path), production_mode=True)

    assert not (tmp_path / "reservations_debug.log").exists()
    assert (tmp_path / "reservations_errors.log").exists()
    assert logging.getLogger().level == logging.WARNING
    assert get_logger("ResourceRegistry").level == logging.WARNING

"""Shared pytest fixtures."""

import logging

import pytest

from project_analyzer.analyzer_logging import ROOT_LOGGER_NAME


@pytest.fixture(autouse=True)
def reset_analyzer_logger():
    """Undo handlers and levels installed by setup_logging during a test."""
    yield
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)

"""Shared test fixtures for the discord_transfer test suite."""

import logging

import pytest

from discord_transfer.utils.logging import LOGGER_NAME


@pytest.fixture(autouse=True)
def _reset_logger():
    """Drop handlers added by a test so records don't leak between tests."""
    logger = logging.getLogger(LOGGER_NAME)
    before = list(logger.handlers)
    propagate = logger.propagate
    yield
    logger.propagate = propagate
    for handler in logger.handlers[:]:
        if handler not in before:
            logger.removeHandler(handler)
            handler.close()


@pytest.fixture()
def sample_user():
    """Return a sample Discord user dict."""
    return {
        "id": "80351110224678912",
        "username": "nelly",
        "global_name": "Nelly",
        "avatar": "8342729096ea3675442027381ff50dfe",
        "discriminator": "0",
    }


@pytest.fixture()
def sample_bot_user():
    """Return a sample Discord bot user dict."""
    return {
        "id": "155149108183695360",
        "username": "Dyno",
        "avatar": None,
        "discriminator": "3861",
        "bot": True,
    }


@pytest.fixture()
def log_capture(caplog):
    """caplog that also sees records from the non-propagating tool logger."""
    logging.getLogger(LOGGER_NAME).propagate = True
    caplog.set_level(logging.DEBUG, logger=LOGGER_NAME)
    return caplog

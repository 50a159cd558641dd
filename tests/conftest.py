import pytest

from .common import configured_tz


# The examples throughout the suite are written for Paris:
# CET (+01:00) in winter, CEST (+02:00) in summer.
@pytest.fixture(autouse=True, scope="session")
def paris_time():
    with configured_tz("Europe/Paris"):
        yield

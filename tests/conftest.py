from datetime import datetime
import logging
from zoneinfo import ZoneInfo

import pytest

TZ_NAME = "America/Bogota"


@pytest.fixture
def tz_name():
    return TZ_NAME


@pytest.fixture
def now():
    # Wednesday
    return datetime(2026, 3, 18, 10, 0, tzinfo=ZoneInfo(TZ_NAME))


@pytest.fixture
def logger():
    return logging.getLogger("gastos-tests")

from __future__ import annotations

import pytest

from fakes import Fixture


@pytest.fixture
def fx() -> Fixture:
    return Fixture()

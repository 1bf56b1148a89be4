from typing import Generator

import pytest

from pvschema import configure_locale


@pytest.fixture(autouse=True)
def uninstall_locale() -> Generator[None, None, None]:
    """The locale table is process-wide state. Make sure no test leaks its locale into another one."""
    configure_locale(None)
    yield
    configure_locale(None)

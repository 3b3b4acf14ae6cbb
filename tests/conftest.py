import pytest

from fakes import FakeOrganization
from plus1.config import EnforcementConfig


@pytest.fixture
def config() -> EnforcementConfig:
    return EnforcementConfig(batch_delay=0, retry_delay=0)


@pytest.fixture
def org() -> FakeOrganization:
    return FakeOrganization()

import pytest

from compliancebot.config import Settings


@pytest.fixture
def settings():
    return Settings(github_app_id=1234, github_private_key="not-a-real-key")

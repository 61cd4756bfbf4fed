import pytest

from tests.helpers import sample_snapshot_data


@pytest.fixture
def sample_snapshot_dict() -> dict:
    return sample_snapshot_data()

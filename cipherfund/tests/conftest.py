import pytest

from ..relayer.client import reset_relayer


@pytest.fixture(autouse=True)
def clean_relayer():
    reset_relayer()
    yield
    reset_relayer()

import pytest

from fakes import IdentityModel, JitterModel, make_table


@pytest.fixture
def table():
    return make_table()


@pytest.fixture
def identity_model(table):
    return IdentityModel(table)


@pytest.fixture
def jitter_model(table):
    return JitterModel(table)

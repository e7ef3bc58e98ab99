import pytest
import os
from unittest.mock import patch, MagicMock

os.environ.setdefault('TESTING', 'true')

from bucketmap.hash_table import HashTable


class CollidingKey:
    """Key whose hash is chosen by the test, counting hash and eq calls."""

    def __init__(self, name, hash_value=0):
        self.name = name
        self.hash_value = hash_value
        self.hash_calls = 0
        self.eq_calls = 0

    def __hash__(self):
        self.hash_calls += 1
        return self.hash_value

    def __eq__(self, other):
        self.eq_calls += 1
        return isinstance(other, CollidingKey) and self.name == other.name

    def __repr__(self):
        return f"CollidingKey({self.name!r})"


@pytest.fixture(autouse=True)
def mock_logger():
    with patch('bucketmap.logger.logger.logger') as mock_logger:
        mock_logger.debug = MagicMock()
        mock_logger.info = MagicMock()
        mock_logger.error = MagicMock()
        yield mock_logger


@pytest.fixture
def table():
    return HashTable()


@pytest.fixture
def identity_table():
    # ints land in bucket `key & (capacity - 1)`, which makes layouts predictable
    return HashTable(hash_function=lambda key: key)


@pytest.fixture
def sample_lines():
    return [
        "alpha\n",
        "beta\n",
        "alpha\n",
        "gamma\n",
        "beta\n",
        "delta\n",
        "alpha\n",
        "epsilon\n",
    ]


@pytest.fixture
def input_file(tmp_path, sample_lines):
    path = tmp_path / "input.txt"
    path.write_text("".join(sample_lines), encoding="utf-8")
    return path

from datetime import datetime

import pytest

from minecraft_world_manager.utils.general import (
    format_size,
    get_iso_date,
    get_timestamp,
)


def test_get_timestamp():
    assert get_timestamp(datetime(2024, 1, 2, 3, 4, 5)) == "20240102_030405"


def test_get_iso_date():
    assert get_iso_date(datetime(2024, 1, 2, 3, 4, 5)) == "2024-01-02"


@pytest.mark.parametrize(
    "size, expected",
    [(0, "0 B"), (512, "512 B"), (2048, "2.0 KB"), (120 * 1024**2, "120.0 MB")],
)
def test_format_size(size, expected):
    assert format_size(size) == expected

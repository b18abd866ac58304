from __future__ import annotations

import pytest

from web2app.sizes import format_file_size


@pytest.mark.parametrize(
    "size,expected",
    [
        (0, "0 Bytes"),
        (1, "1 Bytes"),
        (1023, "1023 Bytes"),
        (1024, "1 KB"),
        (1536, "1.5 KB"),
        (1048576, "1 MB"),
        (3500, "3.42 KB"),
        (5 * 1024**3, "5 GB"),
        (2048 * 1024**3, "2048 GB"),
    ],
)
def test_format_file_size(size, expected):
    assert format_file_size(size) == expected


def test_negative_size_is_rejected():
    with pytest.raises(ValueError):
        format_file_size(-1)

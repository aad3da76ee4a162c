import pytest

from katsu.lib.sizes import MIB, parse_size, to_mib


@pytest.mark.parametrize(
    "value,expected",
    [
        (4096, 4096),
        ("4096", 4096),
        ("512MiB", 512 * 1024**2),
        ("1 GiB", 1024**3),
        ("1.5GiB", 1536 * 1024**2),
        ("100M", 100 * 1000**2),
        ("2gb", 2 * 1000**3),
        ("10Ki", 10 * 1024),
    ],
)
def test_parse_size(value, expected):
    assert parse_size(value) == expected


@pytest.mark.parametrize("value", ["", "MiB", "12 parsecs", "-1M", True])
def test_parse_size_rejects(value):
    with pytest.raises(ValueError):
        parse_size(value)


def test_to_mib_floors():
    assert to_mib(100 * 1000**2) == 95
    assert to_mib(3 * MIB) == 3

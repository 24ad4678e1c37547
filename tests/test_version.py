import pytest

from kindtool.version import display_version, main, truncate, version


@pytest.mark.parametrize(
    ("value", "max_length", "expected"),
    [
        ("A Really Long String", 1, "A"),
        ("A Short String", 10, "A Short St"),
        ("Under Max Length String", 1000, "Under Max Length String"),
    ],
)
def test_truncate(value, max_length, expected):
    result = truncate(value, max_length)
    assert len(result) <= max_length
    assert result == expected


def test_truncate_exact_length():
    assert truncate("abcd", 4) == "abcd"


def test_version_is_core_with_pre_release():
    assert version() == "0.17.0-alpha"


def test_display_version_contains_version():
    shown = display_version()
    assert shown.startswith("kind v0.17.0-alpha python")
    assert "/" in shown.split(" ")[-1]


def test_main_quiet_prints_semver(capsys):
    assert main(["-q"]) == 0
    assert capsys.readouterr().out == "0.17.0-alpha\n"


def test_main_prints_display_version(capsys):
    assert main([]) == 0
    assert capsys.readouterr().out == display_version() + "\n"
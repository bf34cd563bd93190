import pytest

from numatools.policy import (
    Policy,
    find_first,
    format_mask,
    memsize,
    parse_policy,
    policy_name,
    print_policies,
)


@pytest.mark.parametrize(
    "left,right",
    [
        ("1k", "1024"),
        ("1K", "1024"),
        ("2M", "2048k"),
        ("1g", "1024M"),
        ("0x10", "16"),
        ("010", "8"),
        ("  12", "12"),
        ("7x", "7"),
    ],
)
def test_memsize_equivalences(left, right):
    assert memsize(left) == memsize(right)


def test_memsize_plain_number():
    assert memsize("4096") == 4096


def test_memsize_kilobyte():
    assert memsize("1k") == 1024


def test_memsize_without_digits_is_zero():
    assert memsize("abc") == 0
    assert memsize("k") == 0


def test_memsize_hex_prefix_without_digits():
    assert memsize("0xg") == 0


def test_memsize_negative():
    assert memsize("-1k") == -memsize("1k")


def test_policy_name_known():
    assert policy_name(Policy.DEFAULT) == "default"
    assert policy_name(Policy.BIND) == "bind"
    assert policy_name(Policy.WEIGHTED_INTERLEAVE) == "weighted-interleave"


def test_policy_name_unknown():
    assert policy_name(Policy.MAX) == "[7]"


@pytest.mark.parametrize(
    "name,arg,expected",
    [
        ("interleave", "0", Policy.INTERLEAVE),
        ("--membind", "1", Policy.BIND),
        ("local", None, Policy.LOCAL),
        ("default", None, Policy.DEFAULT),
        ("preferred", "0", Policy.PREFERRED),
        ("preferred-many", "0,1", Policy.PREFERRED_MANY),
        ("weighted-interleave", "all", Policy.WEIGHTED_INTERLEAVE),
        (None, None, Policy.DEFAULT),
    ],
)
def test_parse_policy(name, arg, expected):
    assert parse_policy(name, arg) == expected


@pytest.mark.parametrize(
    "name,arg",
    [("interleave", None), ("membind", None), ("bogus", "0"), ("", "0")],
)
def test_parse_policy_errors(name, arg):
    with pytest.raises(ValueError):
        parse_policy(name, arg)


def test_print_policies(capsys):
    print_policies()
    assert capsys.readouterr().out == (
        "Policies: preferred-many local interleave membind preferred default "
        "weighted-interleave\n"
    )


def test_format_mask_sorted_and_deduplicated():
    assert format_mask("nodes", [3, 0, 3]) == "nodes: 0 3 "


def test_format_mask_int_matches_set():
    assert format_mask("m", 0b1010) == format_mask("m", {1, 3})


def test_format_mask_empty():
    assert format_mask("empty", set()) == "empty: "


def test_find_first():
    assert find_first({5, 2}) == 2
    assert find_first(1 << 5) == 5


def test_find_first_empty():
    assert find_first([]) is None
    assert find_first(0) is None
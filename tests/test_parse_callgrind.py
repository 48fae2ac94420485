import os
import pytest
from cgtrace.errors import MalformedSchemaError, ParseError, TrailingInputError
from cgtrace.parse_callgrind import (
    CallgrindParser,
    cost_multiplier,
    parse_callgrind,
    parse_callgrind_lines,
)

DATA_DIR = os.path.join(os.path.dirname(__file__), "data")

HEADER = ["positions: line", "events: usec"]


def _parse(body, header=HEADER):
    return parse_callgrind_lines(header + body)


def test_self_cost_lines_sum_into_one_function():
    profile = _parse(["fn=main", "1 10", "2 20", "3 30"])

    assert list(profile.functions) == ["main"]
    assert profile.functions["main"].cost == 60 * 1_000


def test_call_and_self_cost():
    profile = _parse(
        ["fn=build", "8 100", "cfn=one.js", "calls=1 0", "10 3002300"]
    )

    build = profile.functions["build"]
    assert build.cost == 100_000
    assert build.line_number == 8
    assert list(build.calls) == ["one.js"]
    assert build.calls["one.js"].calls == 1
    assert build.calls["one.js"].cost == 3_002_300_000

    one = profile.functions["one.js"]
    assert one.called == 1
    assert one.line_number == 10
    assert one.cost == 0


@pytest.mark.parametrize(
    "count, expected",
    [(1, 10), (2, 10), (3, 15), (4, 12)],
)
def test_repeat_and_delta_positions(count, expected):
    lines = ["10 1", "* 1", "+5 1", "-3 1"]
    profile = _parse(["fn=f"] + lines[:count])

    assert profile.functions["f"].line_number == expected


def test_hex_positions():
    profile = _parse(["fn=f", "0x1A 1"])

    assert profile.functions["f"].line_number == 26


def test_positions_chain_per_column():
    profile = _parse(
        ["fn=f", "0x10 7 1", "+2 * 1", "* -3 1"],
        header=["positions: instr line", "events: usec"],
    )

    # The first column is the instruction address.
    assert profile.functions["f"].line_number == 0x12


def test_repeated_associations_accumulate():
    forward = _parse(
        ["fn=a", "cfn=b", "calls=2 1", "1 10", "calls=3 1", "1 20"]
    )
    backward = _parse(
        ["fn=a", "cfn=b", "calls=3 1", "1 20", "calls=2 1", "1 10"]
    )

    for profile in (forward, backward):
        call = profile.functions["a"].calls["b"]
        assert call.calls == 5
        assert call.cost == 30_000
        assert profile.functions["b"].called == 5


def test_two_unrelated_functions_are_two_roots():
    profile = _parse(["fn=a", "1 1", "fn=b", "1 1"])

    assert [fn.name for fn in profile.roots()] == ["a", "b"]


def test_callee_referenced_before_context_exists_with_zero_cost():
    profile = _parse(["fn=a", "cfn=b", "calls=1 1", "1 5"])

    b = profile.functions["b"]
    assert b.cost == 0
    assert b.called == 1
    assert profile.roots() == [profile.functions["a"]]


def test_missing_event_values_are_padded():
    profile = _parse(["fn=a", "1"], header=["positions: line", "events: usec Ir"])

    assert profile.functions["a"].cost == 0


def test_only_first_event_is_used():
    profile = _parse(
        ["fn=a", "1 5 999"], header=["positions: line", "events: usec Ir"]
    )

    assert profile.functions["a"].cost == 5_000


def test_too_many_values_is_malformed():
    with pytest.raises(MalformedSchemaError) as e:
        _parse(["fn=a", "8 100 5"])

    assert e.value.line == "8 100 5"
    assert e.value.line_number == 4
    assert "line 4" in str(e.value)
    assert isinstance(e.value, ParseError)


def test_unknown_line_is_trailing_input():
    with pytest.raises(TrailingInputError) as e:
        _parse(["fn=a", "1 1", "this is not callgrind"])

    assert e.value.line == "this is not callgrind"
    assert e.value.line_number == 5


def test_body_without_header_is_trailing_input():
    with pytest.raises(TrailingInputError) as e:
        parse_callgrind_lines(["fn=a", "1 1"])

    assert e.value.line == "fn=a"


def test_empty_input():
    profile = parse_callgrind_lines([])

    assert profile.functions == {}
    assert profile.creator is None
    assert profile.command is None


def test_header_keys():
    profile = parse_callgrind_lines(
        [
            "version: 1",
            "creator: remake 4.3",
            "pid: 42",
            "cmd: make -f build:all.mk",
            "desc: I1 cache",
            "event: usec : Microseconds",
            "positions: line",
            "events: usec",
            "summary: 1500",
            "fn=a",
            "1 1",
        ]
    )

    assert profile.creator == "remake 4.3"
    assert profile.command == "make -f build:all.mk"
    assert profile.total_cost == 1_500_000


def test_summary_scaled_by_first_event():
    profile = parse_callgrind_lines(
        ["events: 100usec Ir", "totals: 2000 5", "fn=a", "1 1"]
    )

    assert profile.total_cost == 2000 * 100 * 1_000


def test_id_table_back_references():
    profile = _parse(
        [
            "fn=(1) main",
            "1 1",
            "fn=(2) work",
            "1 1",
            "fn=(1)",
            "cfn=(2)",
            "calls=1 1",
            "1 10",
            "fn=(9)",
            "1 1",
        ]
    )

    assert set(profile.functions) == {"main", "work", ""}
    assert profile.functions["main"].calls["work"].cost == 10_000


def test_caller_and_callee_slots_are_independent():
    profile = _parse(["fn=(1) a", "cfn=(2) b", "calls=1 1", "1 1", "2 7"])

    # The self cost line is attributed to fn, not cfn.
    assert profile.functions["a"].cost == 7_000
    assert profile.functions["b"].cost == 0


def test_file_aliases_share_id_table():
    profile = _parse(
        [
            "fl=(1) main.c",
            "fn=main",
            "cfi=(2) util.c",
            "cfn=helper",
            "calls=1 3",
            "3 4",
            "fl=(2)",
            "fn=helper",
            "3 4",
        ]
    )

    assert profile.functions["main"].file == "main.c"
    assert profile.functions["helper"].file == "util.c"


def test_self_cost_line_mirrors_object_into_callee_object():
    profile = _parse(
        ["ob=/usr/lib/libc.so.6", "fn=f", "1 1", "cfn=g", "calls=1 1", "1 2"]
    )

    assert profile.functions["f"].module == "libc.so.6"
    assert profile.functions["g"].module == "libc.so.6"


def test_jump_records_are_ignored():
    profile = _parse(["fn=f", "jump=3 10", "jcnd=1 3 12", "1 1"])

    assert profile.functions["f"].cost == 1_000


def test_association_without_cost_line():
    profile = _parse(["fn=f", "1 1", "cfn=g", "calls=1 1", "fn=h", "1 1"])

    assert profile.functions["f"].calls == {}
    assert "g" not in profile.functions
    assert profile.functions["h"].cost == 1_000


def test_parts_are_concatenated():
    profile = _parse(
        ["fn=f", "1 1", "", "part: 2", "fn=f", "1 2", "cfn=g", "calls=1 1", "1 3"]
    )

    f = profile.functions["f"]
    assert f.cost == 3_000
    assert f.calls["g"].cost == 3_000


def test_name_identity_collapses_same_named_functions():
    body = [
        "fl=a.c",
        "fn=init",
        "1 1",
        "fl=b.c",
        "fn=init",
        "1 2",
    ]

    collapsed = _parse(body)
    assert list(collapsed.functions) == ["init"]
    assert collapsed.functions["init"].cost == 3_000

    qualified = CallgrindParser(HEADER + body, identity="qualified").parse()
    assert sorted(qualified.functions) == [":a.c:init", ":b.c:init"]
    assert {fn.name for fn in qualified.functions.values()} == {"init"}


def test_unknown_identity_policy():
    with pytest.raises(ValueError):
        CallgrindParser([], identity="file")


@pytest.mark.parametrize(
    "event, expected",
    [
        ("usec", 1_000),
        ("100usec", 100_000),
        ("msec", 1_000_000),
        ("nsec", 1),
        ("Ir", 1),
        ("", 1),
    ],
)
def test_cost_multiplier(event, expected):
    assert cost_multiplier(event) == expected


def test_cost_multiplier_large_values():
    duration = int(50034 * cost_multiplier("100usec"))

    assert duration // 1_000_000_000 == 5


def test_parse_file():
    profile = parse_callgrind(os.path.join(DATA_DIR, "callgrind.out.build"))

    assert profile.creator == "remake 4.3+dbg-1.6"
    assert profile.command == "remake --profile -f Makefile all"
    assert profile.total_cost == 4_000_000_000
    assert [fn.name for fn in profile.roots()] == ["all"]

    build = profile.functions["build"]
    assert build.called == 1
    assert build.cost == 200_000
    assert build.file == "Makefile"
    assert list(build.calls) == ["one.o", "two.o"]
    assert profile.functions["all"].calls["build"].cost == 3_000_000_000


def test_callee_defaults_to_callers_file_and_object():
    body = [
        "ob=/usr/bin/app",
        "fl=a.c",
        "fn=main",
        "1 1",
        "cfn=helper",
        "calls=1 1",
        "1 5",
        "fn=helper",
        "1 3",
    ]

    qualified = CallgrindParser(HEADER + body, identity="qualified").parse()

    assert sorted(qualified.functions) == ["/usr/bin/app:a.c:helper", "/usr/bin/app:a.c:main"]
    helper = qualified.functions["/usr/bin/app:a.c:helper"]
    assert helper.called == 1
    assert helper.cost == 3_000
    assert helper.module == "app"
    assert [fn.name for fn in qualified.roots()] == ["main"]


def test_callee_file_applies_to_one_call_only():
    profile = _parse(
        [
            "fl=a.c",
            "fn=main",
            "cfl=b.c",
            "cob=libx.so",
            "cfn=x",
            "calls=1 1",
            "1 1",
            "cfn=y",
            "calls=1 1",
            "1 1",
        ]
    )

    assert profile.functions["x"].file == "b.c"
    assert profile.functions["x"].module == "libx.so"
    assert profile.functions["y"].file == "a.c"
    assert profile.functions["y"].module is None


def test_non_integer_call_count_counts_as_zero():
    profile = _parse(["fn=f", "cfn=g", "calls=many 1", "1 5"])

    # With zero calls the cost line is the caller's own cost.
    assert profile.functions["f"].calls == {}
    assert profile.functions["f"].cost == 5_000
    assert "g" not in profile.functions


def test_non_numeric_summary_counts_as_zero():
    profile = parse_callgrind_lines(
        ["events: usec", "summary: lots", "fn=a", "1 1"]
    )

    assert profile.total_cost == 0


def test_missing_position_columns_keep_previous_values():
    parser = CallgrindParser(
        ["positions: line instr", "events: usec", "fn=f", "10 0x20 1", "+2"]
    )
    profile = parser.parse()

    assert parser.last_positions == [12, 0x20]
    assert profile.functions["f"].line_number == 12
    assert profile.functions["f"].cost == 1_000

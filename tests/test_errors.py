import pytest

from kindtool.errors import (
    Aggregate,
    KindError,
    errorf,
    errors,
    new,
    new_aggregate,
    new_without_stack,
    stack_trace,
    with_stack,
    wrap,
    wrapf,
)


def test_errors_wrapped_aggregate():
    errs = [new("foo"), errorf("bar")]
    err = wrapf(new_aggregate(errs), "baz: %s", "quux")
    assert errors(err) == errs


def test_errors_nil():
    assert errors(None) == []


def test_stack_trace_wrapped_chain():
    err = new("foo")
    expected = err.stack
    result = stack_trace(wrap(wrap(err, "bar"), "baz"))
    assert result is expected


def test_stack_trace_nil():
    assert stack_trace(None) is None


def test_stack_trace_without_stack_is_none():
    assert stack_trace(new_without_stack("plain")) is None


def test_wrap_message_format():
    err = wrap(new("inner"), "outer")
    assert str(err) == "outer: inner"
    assert isinstance(err, KindError)


def test_wrapf_formats_message():
    err = wrapf(new("inner"), "failed %s %d", "thing", 3)
    assert str(err) == "failed thing 3: inner"


def test_errorf_formats():
    assert str(errorf("value %d", 42)) == "value 42"


def test_wrap_none_returns_none():
    assert wrap(None, "msg") is None
    assert wrapf(None, "msg %s", "x") is None
    assert with_stack(None) is None


def test_with_stack_keeps_message_and_cause():
    base = ValueError("bad")
    err = with_stack(base)
    assert str(err) == "bad"
    assert err.cause is base


def test_new_aggregate_empty_is_none():
    assert new_aggregate([]) is None
    assert new_aggregate([None, None]) is None


def test_new_aggregate_single_is_reduced():
    only = new("only")
    err = new_aggregate([only])
    assert err.cause is only
    assert errors(err) == []
    assert str(err) == "only"


def test_new_aggregate_filters_none():
    a, b = new("a"), new("b")
    assert errors(new_aggregate([None, a, None, b])) == [a, b]


def test_new_aggregate_flattens_nested():
    a, b, c = new("a"), new("b"), new("c")
    err = new_aggregate([Aggregate([a, Aggregate([b])]), c])
    assert errors(err) == [a, b, c]


def test_aggregate_string_lists_messages():
    assert str(new_aggregate([new("a"), new("b")])) == "[a, b]"


def test_aggregate_string_deduplicates():
    assert str(new_aggregate([new("a"), new("a")])) == "a"
    assert str(new_aggregate([new("a"), new("b"), new("a")])) == "[a, b]"


def test_aggregate_empty_string():
    assert str(Aggregate([])) == ""


def test_aggregate_contains():
    a, b = new("a"), new("b")
    agg = Aggregate([a, wrap(b, "context")])
    assert agg.contains(a)
    assert agg.contains(b)
    assert not agg.contains(new("z"))


def test_aggregate_contains_nested():
    target = new("deep")
    agg = Aggregate([new("x"), Aggregate([new("y"), target])])
    assert agg.contains(target)


def test_kind_error_can_be_raised():
    err = wrap(new("cause"), "boom")
    assert str(err.cause) == "cause"
    with pytest.raises(KindError) as info:
        raise err
    assert info.value is err
    assert str(info.value) == "boom: cause"
"""Tests for structural item comparison."""
import pytest

from feed_aggregator.comparison import deep_equal


@pytest.mark.parametrize(
    "a, b",
    [
        ({"id": "1", "tags": ["a", "b"]}, {"tags": ["a", "b"], "id": "1"}),
        ({"authors": [{"name": "x"}]}, {"authors": ({"name": "x"},)}),
        ({"n": 1}, {"n": 1.0}),
        (None, None),
    ],
)
def test_equal_values(a, b):
    """Test structurally identical values compare equal."""
    assert deep_equal(a, b)


@pytest.mark.parametrize(
    "a, b",
    [
        ({"id": "1"}, {"id": "1", "url": None}),
        ({"tags": ["a", "b"]}, {"tags": ["b", "a"]}),
        ({"flag": True}, {"flag": 1}),
        ({"nested": {"a": 1}}, {"nested": {"a": 2}}),
        ({"list": []}, {"list": {}}),
        ("1", 1),
    ],
)
def test_different_values(a, b):
    """Test any structural difference is detected."""
    assert not deep_equal(a, b)


def test_exclude_masks_top_level_keys():
    """Test excluded keys are ignored on both sides."""
    cached = {"id": "1", "title": "t", "date_published": "2024-01-01T00:00:00.000Z"}
    submitted = {"id": "1", "title": "t"}

    assert not deep_equal(submitted, cached)
    assert deep_equal(submitted, cached, exclude=("date_published",))
    assert not deep_equal({**submitted, "title": "u"}, cached, exclude=("date_published",))


def test_exclude_does_not_reach_nested_keys():
    """Test masking only applies to the top level."""
    a = {"meta": {"date_published": "x"}}
    b = {"meta": {}}

    assert not deep_equal(a, b, exclude=("date_published",))

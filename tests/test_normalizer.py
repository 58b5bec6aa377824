"""
Unit tests for criteria normalization.
"""

import copy
from typing import Optional

from query_cacher.caching.normalizer import DUPLICATE_MARKER, UNNAMED_MODEL, normalize
from query_cacher.models import Nameable, Op


class Tag:
    """Non-string mapping key with a readable string form."""

    def __init__(self, name: str):
        self.name = name

    def __str__(self) -> str:
        return f"tag({self.name})"


class AnonymousModel(Nameable):
    @property
    def model_name(self) -> Optional[str]:
        return None


class TestNormalize:
    """Test cases for normalize."""

    def test_scalars_pass_through(self):
        assert normalize(None) is None
        assert normalize("foo") == "foo"
        assert normalize(1) == 1
        assert normalize(2.5) == 2.5
        assert normalize(True) is True

    def test_nested_mapping(self):
        value = {"a": 1, "b": "foo", "c": {"d": "bar"}}
        assert normalize(value) == {"a": 1, "b": "foo", "c": {"d": "bar"}}

    def test_sequence_order_preserved(self):
        assert normalize([3, 1, 2]) == [3, 1, 2]
        assert normalize((1, "x")) == [1, "x"]

    def test_empty_composites(self):
        assert normalize({}) == {}
        assert normalize([]) == []

    def test_self_reference(self):
        o = {"a": 1, "b": "foo"}
        o["c"] = o
        assert normalize(o) == {"a": 1, "b": "foo", "c": DUPLICATE_MARKER}

    def test_cycle_through_list(self):
        o = {"a": 1, "b": []}
        o["b"].append(o)
        assert normalize(o) == {"a": 1, "b": [DUPLICATE_MARKER]}

    def test_cycle_in_nested_mapping(self):
        b = {}
        b["cycle"] = b
        assert normalize({"a": 1, "b": b}) == {"a": 1, "b": {"cycle": DUPLICATE_MARKER}}

    def test_self_referencing_list(self):
        arr = [1, 2]
        arr.append(arr)
        assert normalize(arr) == [1, 2, DUPLICATE_MARKER]

    def test_deep_cycle_terminates(self):
        root = {"level": 0}
        node = root
        for level in range(1, 50):
            child = {"level": level}
            node["child"] = child
            node = child
        node["child"] = root

        result = normalize(root)
        for _ in range(50):
            result = result["child"]
        assert result == DUPLICATE_MARKER

    def test_alias_without_cycle_collapses(self):
        shared = {"x": 1}
        value = {"first": shared, "second": shared}
        assert normalize(value) == {"first": {"x": 1}, "second": DUPLICATE_MARKER}

    def test_alias_in_sequence_collapses(self):
        shared = [1, 2]
        assert normalize([shared, shared]) == [[1, 2], DUPLICATE_MARKER]

    def test_equal_but_distinct_values_are_expanded(self):
        value = {"first": {"x": 1}, "second": {"x": 1}}
        assert normalize(value) == {"first": {"x": 1}, "second": {"x": 1}}

    def test_tag_keys_after_string_keys(self):
        value = {Tag("d"): "bar", "a": 1}
        value["b"] = "foo"
        normalized = normalize(value)
        assert list(normalized) == ["a", "b", "tag(d)"]
        assert normalized["tag(d)"] == "bar"

    def test_tag_keys_with_cycle(self):
        o = {"a": 1, "b": "foo", Tag("d"): "bar"}
        o["c"] = o
        assert list(normalize(o).items()) == [
            ("a", 1),
            ("b", "foo"),
            ("c", DUPLICATE_MARKER),
            ("tag(d)", "bar"),
        ]

    def test_operator_keys(self):
        value = {"where": {"age": {Op.GT: 5, Op.LT: 10}}}
        assert normalize(value) == {"where": {"age": {"Op.gt": 5, "Op.lt": 10}}}

    def test_model_replaced_by_name(self, collections):
        entity, entity2 = collections
        value = {"where": {"id": 1}, "include": [entity2]}
        assert normalize(value) == {"where": {"id": 1}, "include": ["entity2"]}

    def test_model_with_circular_associations(self, collections):
        entity, entity2 = collections
        assert normalize({"include": [entity, entity2]}) == {"include": ["entity", "entity2"]}

    def test_unnamed_model(self):
        assert normalize({"model": AnonymousModel()}) == {"model": UNNAMED_MODEL}

    def test_repeated_model_is_duplicate(self, collections):
        entity, _ = collections
        assert normalize([entity, entity]) == ["entity", DUPLICATE_MARKER]

    def test_sets_are_ordered(self):
        assert normalize({"ids": {3, 1, 2}}) == {"ids": [1, 2, 3]}

    def test_input_not_mutated(self):
        o = {"a": 1, Tag("d"): "bar", "list": [1, 2]}
        o["c"] = o
        keys_before = list(o.keys())
        list_before = copy.copy(o["list"])

        normalize(o)

        assert list(o.keys()) == keys_before
        assert o["list"] == list_before
        assert o["c"] is o

    def test_repeated_calls_are_independent(self):
        shared = {"x": 1}
        assert normalize(shared) == {"x": 1}
        assert normalize(shared) == {"x": 1}

    def test_deeply_nested_mapping(self):
        root = node = {}
        for _ in range(5000):
            node["n"] = {}
            node = node["n"]
        node["end"] = True

        result = normalize(root)
        for _ in range(5000):
            result = result["n"]
        assert result == {"end": True}

    def test_deeply_nested_sequence_with_cycle(self):
        root = node = []
        for _ in range(5000):
            child = []
            node.append(child)
            node = child
        node.append(root)

        result = normalize(root)
        for _ in range(5000):
            result = result[0]
        assert result == [DUPLICATE_MARKER]

"""Tests for canonical job argument encoding."""

import pytest

from offcron.scheduling.args import decode_args, encode_args, normalize_args


class TestNormalizeArgs:
    def test_sequence_keyed_by_position(self):
        assert normalize_args(["a", "b"]) == {0: "a", 1: "b"}

    def test_mapping_sorted_by_key(self):
        result = normalize_args({2: "c", 0: "a", 1: "b"})
        assert list(result) == [0, 1, 2]

    def test_none_is_empty(self):
        assert normalize_args(None) == {}

    def test_digit_string_keys_coerced(self):
        assert normalize_args({"1": "b", "0": "a"}) == {0: "a", 1: "b"}

    def test_rejects_plain_string(self):
        with pytest.raises(TypeError):
            normalize_args("abc")

    def test_rejects_non_integer_keys(self):
        with pytest.raises(ValueError):
            normalize_args({"name": "x"})


class TestEncodeArgs:
    def test_insertion_order_does_not_matter(self):
        assert encode_args({1: "b", 0: "a"}) == encode_args({0: "a", 1: "b"})

    def test_sequence_and_mapping_agree(self):
        assert encode_args(["a", "b"]) == encode_args({1: "b", 0: "a"})

    def test_compact_format(self):
        assert encode_args(["a", 1]) == '[[0,"a"],[1,1]]'

    def test_nested_dicts_are_key_sorted(self):
        assert encode_args([{"b": 1, "a": 2}]) == encode_args([{"a": 2, "b": 1}])

    def test_different_values_differ(self):
        assert encode_args(["a"]) != encode_args(["b"])


class TestDecodeArgs:
    def test_encoding_is_a_fixed_point(self):
        encoded = encode_args({3: [1, 2], 0: "x", 1: None})
        assert encode_args(decode_args(encoded)) == encoded

    def test_empty_values(self):
        assert decode_args("") == {}
        assert decode_args(None) == {}
        assert decode_args("[]") == {}

    def test_restores_sorted_order(self):
        assert list(decode_args('[[2,"c"],[0,"a"]]')) == [0, 2]

    def test_malformed_payload(self):
        with pytest.raises(ValueError):
            decode_args('"just a string"')

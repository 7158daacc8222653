"""Header → field auto-mapping tests"""

import pytest

from pdf_autofill.auto_mapper import (
    AutomaticFieldMapper,
    auto_map_fields,
    edit_distance,
    normalize_string,
    similarity,
)
from pdf_autofill.models import FieldDescriptor


def fields(*names):
    return [FieldDescriptor(name=n) for n in names]


class TestSimilarity:
    @pytest.mark.parametrize("value", ["Name", "first_name", "", "a b-c"])
    def test_identical_strings_score_one(self, value):
        assert similarity(value, value) == 1.0

    def test_normalization_ignores_case_and_separators(self):
        assert normalize_string("First_Name - X") == "firstnamex"
        assert similarity("first_name", "First Name") == 1.0

    def test_containment_scores_point_eight_both_ways(self):
        assert similarity("email", "Email Address") == pytest.approx(0.8)
        assert similarity("Email Address", "email") == pytest.approx(0.8)

    def test_edit_distance_score(self):
        assert edit_distance("kitten", "sitting") == 3
        assert similarity("kitten", "sitting") == pytest.approx(1 - 3 / 7)

    def test_edit_distance_unit_costs(self):
        assert edit_distance("ab", "ba") == 2
        assert edit_distance("", "abc") == 3
        assert edit_distance("same", "same") == 0

    def test_unrelated_strings(self):
        assert similarity("abc", "xyz") == 0.0

    def test_empty_string_is_not_a_substring_match(self):
        assert similarity("", "name") == 0.0


class TestAutomaticFieldMapper:
    def test_maps_by_best_score(self):
        mapping = auto_map_fields(
            ["Full Name", "Email Address", "zzz"],
            fields("phone", "email", "full_name"),
        )
        assert mapping == {"Full Name": "full_name", "Email Address": "email"}

    def test_field_is_claimed_once(self):
        mapping = auto_map_fields(["name", "Name", "NAME"], fields("name"))
        assert mapping == {"name": "name"}

    def test_no_field_assigned_twice(self):
        headers = ["date", "Date", "date_of_birth", "birth date", "dob"]
        mapping = auto_map_fields(headers, fields("Date", "Date of Birth", "DOB"))
        assert len(set(mapping.values())) == len(mapping)

    def test_greedy_order_follows_headers(self):
        # "names" would also match "name", but "name_x" comes first and claims it
        mapping = auto_map_fields(["name_x", "names"], fields("name", "nomes"))
        assert mapping["name_x"] == "name"
        assert mapping["names"] == "nomes"

    def test_below_threshold_is_unmapped(self):
        mapping = auto_map_fields(["abcd"], fields("wxyz"))
        assert mapping == {}

    def test_threshold_is_inclusive(self):
        mapper = AutomaticFieldMapper(threshold=0.5)
        match = mapper.find_best_mapping("ab", ["ax"])
        assert match is not None
        assert match.score == pytest.approx(0.5)
        assert match.method == "edit_distance"

    def test_ties_keep_first_field(self):
        match = AutomaticFieldMapper().find_best_mapping("abc", ["abd", "abe"])
        assert match.field_name == "abd"

    def test_unnamed_fields_are_ignored(self):
        mapping = auto_map_fields(["x"], fields("", "y"))
        assert mapping == {}

    def test_detailed_matches(self):
        matches = AutomaticFieldMapper().auto_map_detailed(["Name"], fields("name"))
        assert len(matches) == 1
        assert matches[0].method == "exact"
        assert matches[0].score == 1.0

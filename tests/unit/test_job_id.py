"""
Parent/child job id derivation tests.
"""

import pytest

from core.job_id import (
    DELIMITER,
    child_job_id,
    child_prefix,
    is_child_of,
    new_job_id,
    parent_job_id,
    sequence_index,
    validate_external_job_id,
)


class TestChildJobId:

    def test_first_child_of_job_2(self):
        assert child_job_id("job-2", 1) == "job-2-seq1"

    def test_index_must_be_positive(self):
        with pytest.raises(ValueError):
            child_job_id("job-2", 0)

    def test_parent_must_be_non_empty(self):
        with pytest.raises(ValueError):
            child_job_id("", 1)

    @pytest.mark.parametrize("parent", ["job-2", "abc", new_job_id(), "a-b-c"])
    @pytest.mark.parametrize("index", [1, 2, 10, 999])
    def test_parent_recovered_from_child(self, parent, index):
        child = child_job_id(parent, index)
        assert parent_job_id(child) == parent
        assert sequence_index(child) == index
        assert is_child_of(child, parent)


class TestParentJobId:

    def test_strips_last_segment(self):
        assert parent_job_id("job-2-seq1") == "job-2"

    def test_no_delimiter_has_no_parent(self):
        assert parent_job_id("abc123") is None

    def test_leading_delimiter_has_no_parent(self):
        assert parent_job_id("-seq1") is None


class TestSequenceIndex:

    def test_parses_multi_digit(self):
        assert sequence_index("job-2-seq10") == 10

    @pytest.mark.parametrize("job_id", ["job-2", "job", "job-2-sequence1", "job-2-seq"])
    def test_non_sequence_ids(self, job_id):
        assert sequence_index(job_id) is None


class TestIsChildOf:

    def test_grandchild_is_not_a_child(self):
        assert not is_child_of("job-2-seq1-seq1", "job-2")

    def test_sibling_prefix_is_not_a_child(self):
        # "job-1-" must not match children of "job-10"
        assert not is_child_of("job-10-seq1", "job-1")

    def test_plain_job_under_prefix_is_not_a_child(self):
        assert not is_child_of("job-1", "job")

    def test_child_prefix_ends_with_delimiter(self):
        assert child_prefix("job-2") == f"job-2{DELIMITER}"


class TestGeneratedIds:

    def test_generated_ids_are_unique(self):
        ids = {new_job_id() for _ in range(200)}
        assert len(ids) == 200

    def test_generated_ids_never_contain_delimiter(self):
        assert all(DELIMITER not in new_job_id() for _ in range(50))


class TestExternalIdValidation:

    def test_plain_id_accepted(self):
        assert validate_external_job_id("run42") == "run42"

    def test_delimiter_rejected(self):
        with pytest.raises(ValueError, match="must not contain"):
            validate_external_job_id("run-42")

    @pytest.mark.parametrize("job_id", ["", "   "])
    def test_blank_rejected(self, job_id):
        with pytest.raises(ValueError):
            validate_external_job_id(job_id)

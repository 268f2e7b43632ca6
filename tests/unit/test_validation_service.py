"""
Unit tests for import row validation.

Run: pytest tests/unit/test_validation_service.py -v
"""

import pytest

from models.article_import import (
    ExistingArticle,
    FieldMapping,
    ImportConfiguration,
    ImportStatistics,
    IssueCode,
    Severity,
    ValidationIssue,
)
from services.validation_service import (
    as_number,
    can_proceed_to_preview,
    compute_statistics,
    error_row_indices,
    existing_name_index,
    validate_rows,
)
from tests.factories import DatasetFactory


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mappings():
    return DatasetFactory.default_mappings()


@pytest.fixture
def config():
    return ImportConfiguration()


@pytest.fixture
def existing():
    return [{"id": "a-1", "name": "Premium Cotton Fabric"}]


def codes(issues):
    return [(i.row, i.field, i.code, i.severity) for i in issues]


# ===================
# PER-FIELD RULES
# ===================

class TestNameRules:
    """Tests for the article name rules."""

    def test_valid_row_has_no_issues(self, mappings, config):
        dataset = DatasetFactory.create([["Silk Saree", 2500, "5007", 5, 10]])

        assert validate_rows(dataset, mappings, [], config) == []

    @pytest.mark.parametrize("name", [None, "", "   "])
    def test_blank_name_is_required_error(self, mappings, config, name):
        dataset = DatasetFactory.create([[name, 100, None, None, None]])

        issues = validate_rows(dataset, mappings, [], config)

        assert codes(issues) == [(0, "name", IssueCode.REQUIRED, Severity.ERROR)]
        assert issues[0].message == "Article name is required"

    def test_duplicate_is_warning_when_skipping(self, mappings, existing):
        """Case-insensitive match against existing names."""
        dataset = DatasetFactory.create([["premium cotton fabric", 450, None, None, None]])
        config = ImportConfiguration(skip_duplicates=True)

        issues = validate_rows(dataset, mappings, existing, config)

        assert codes(issues) == [(0, "name", IssueCode.DUPLICATE, Severity.WARNING)]
        assert issues[0].message == 'Article "premium cotton fabric" already exists (duplicate)'

    def test_duplicate_is_error_when_not_skipping(self, mappings, existing):
        dataset = DatasetFactory.create([["Premium Cotton Fabric", 450, None, None, None]])
        config = ImportConfiguration(skip_duplicates=False)

        issues = validate_rows(dataset, mappings, existing, config)

        assert codes(issues) == [(0, "name", IssueCode.DUPLICATE, Severity.ERROR)]

    def test_duplicate_ignored_when_updating_existing(self, mappings, existing):
        dataset = DatasetFactory.create([["Premium Cotton Fabric", 450, None, None, None]])
        config = ImportConfiguration(update_existing=True)

        assert validate_rows(dataset, mappings, existing, config) == []

    def test_existing_records_may_be_models(self, mappings, config):
        dataset = DatasetFactory.create([["Silk", 10, None, None, None]])

        issues = validate_rows(dataset, mappings, [ExistingArticle(id="x", name="SILK")], config)

        assert issues[0].code == IssueCode.DUPLICATE


class TestBaseRateRules:
    """Tests for the base rate rules."""

    def test_missing_base_rate(self, mappings, config):
        dataset = DatasetFactory.create([["Silk", None, None, None, None]])

        issues = validate_rows(dataset, mappings, [], config)

        assert codes(issues) == [(0, "base_rate", IssueCode.REQUIRED, Severity.ERROR)]
        assert issues[0].message == "Base rate is required"

    def test_unparseable_number_transform_is_missing(self, mappings, config):
        """The number transform turns 'abc' into None."""
        dataset = DatasetFactory.create([["Silk", "abc", None, None, None]])

        issues = validate_rows(dataset, mappings, [], config)

        assert issues[0].code == IssueCode.REQUIRED

    def test_text_without_transform_is_not_a_number(self, config):
        mappings = [
            FieldMapping(source_field="Article Name", target_field="name"),
            FieldMapping(source_field="Base Rate", target_field="base_rate"),
        ]
        dataset = DatasetFactory.create([["Silk", "abc", None, None, None]])

        issues = validate_rows(dataset, mappings, [], config)

        assert codes(issues) == [(0, "base_rate", IssueCode.NOT_A_NUMBER, Severity.ERROR)]
        assert issues[0].value == "abc"

    def test_negative_base_rate(self, mappings, config):
        dataset = DatasetFactory.create([["Silk", -5, None, None, None]])

        issues = validate_rows(dataset, mappings, [], config)

        assert codes(issues) == [(0, "base_rate", IssueCode.NEGATIVE, Severity.ERROR)]
        assert issues[0].message == "Base rate cannot be negative"

    def test_zero_base_rate_is_valid(self, mappings, config):
        dataset = DatasetFactory.create([["Silk", 0, None, None, None]])

        assert validate_rows(dataset, mappings, [], config) == []


class TestOptionalFieldRules:
    """Tests for hsn_code, tax_rate and min_quantity."""

    @pytest.mark.parametrize("hsn", ["12", "ABCD", "123456789"])
    def test_bad_hsn_is_warning(self, mappings, config, hsn):
        dataset = DatasetFactory.create([["Silk", 10, hsn, None, None]])

        issues = validate_rows(dataset, mappings, [], config)

        assert codes(issues) == [(0, "hsn_code", IssueCode.INVALID_FORMAT, Severity.WARNING)]

    @pytest.mark.parametrize("hsn", ["5208", "12345678", 5007])
    def test_good_hsn(self, mappings, config, hsn):
        dataset = DatasetFactory.create([["Silk", 10, hsn, None, None]])

        assert validate_rows(dataset, mappings, [], config) == []

    @pytest.mark.parametrize("tax", [-1, 100.5, 150])
    def test_tax_out_of_range_is_error(self, mappings, config, tax):
        dataset = DatasetFactory.create([["Silk", 10, None, tax, None]])

        issues = validate_rows(dataset, mappings, [], config)

        assert codes(issues) == [(0, "tax_rate", IssueCode.OUT_OF_RANGE, Severity.ERROR)]
        assert issues[0].message == "Tax rate must be between 0 and 100"

    @pytest.mark.parametrize("tax", [0, 18, 100])
    def test_tax_bounds_inclusive(self, mappings, config, tax):
        dataset = DatasetFactory.create([["Silk", 10, None, tax, None]])

        assert validate_rows(dataset, mappings, [], config) == []

    @pytest.mark.parametrize("quantity", [0, 2.5, -3])
    def test_min_quantity_must_be_positive_integer(self, mappings, config, quantity):
        dataset = DatasetFactory.create([["Silk", 10, None, None, quantity]])

        issues = validate_rows(dataset, mappings, [], config)

        assert codes(issues) == [(0, "min_quantity", IssueCode.NOT_POSITIVE_INTEGER, Severity.WARNING)]

    def test_unmapped_optional_fields_not_checked(self, config):
        mappings = [
            FieldMapping(source_field="Article Name", target_field="name"),
            FieldMapping(source_field="Base Rate", target_field="base_rate"),
        ]
        dataset = DatasetFactory.create([["Silk", 10, "bad", 999, 0]])

        assert validate_rows(dataset, mappings, [], config) == []


# ===================
# WHOLE DATASET
# ===================

class TestValidateRows:
    """Tests for validate_rows() over several rows."""

    def test_issues_reference_dataset_rows_in_order(self, mappings, config):
        dataset = DatasetFactory.create([
            ["Silk", 10, None, None, None],
            [None, -1, None, None, None],
            ["Cotton", 20, "12", 150, None],
        ])

        issues = validate_rows(dataset, mappings, [], config)

        assert codes(issues) == [
            (1, "name", IssueCode.REQUIRED, Severity.ERROR),
            (1, "base_rate", IssueCode.NEGATIVE, Severity.ERROR),
            (2, "hsn_code", IssueCode.INVALID_FORMAT, Severity.WARNING),
            (2, "tax_rate", IssueCode.OUT_OF_RANGE, Severity.ERROR),
        ]

    def test_deterministic(self, mappings, config, existing):
        dataset = DatasetFactory.create([
            ["Premium Cotton Fabric", "x", "1", 500, 0],
            [None, None, None, None, None],
        ])

        first = validate_rows(dataset, mappings, existing, config)
        second = validate_rows(dataset, mappings, existing, config)

        assert first == second

    def test_dataset_not_modified(self, mappings, config):
        dataset = DatasetFactory.create([["Silk", "1,200 INR", None, None, None]])
        before = [dict(r) for r in dataset.rows]

        validate_rows(dataset, mappings, [], config)

        assert [dict(r) for r in dataset.rows] == before


class TestStatistics:
    """Tests for compute_statistics() and the preview gate."""

    def test_counts(self, mappings, existing):
        """
        Row 0 valid, row 1 duplicate (warning), row 2 two errors,
        row 3 hsn warning.
        """
        dataset = DatasetFactory.create([
            ["Silk", 10, None, None, None],
            ["Premium Cotton Fabric", 20, None, None, None],
            [None, -5, None, None, None],
            ["Linen", 30, "12", None, None],
        ])
        config = ImportConfiguration(skip_duplicates=True)
        issues = validate_rows(dataset, mappings, existing, config)

        stats = compute_statistics(dataset, issues)

        assert stats == ImportStatistics(total=4, valid=3, invalid=1, duplicates=1, warnings=2)
        assert stats.valid + stats.invalid == stats.total

    def test_duplicates_counted_at_any_severity(self, mappings, existing):
        dataset = DatasetFactory.create([["Premium Cotton Fabric", 20, None, None, None]])
        config = ImportConfiguration(skip_duplicates=False)
        issues = validate_rows(dataset, mappings, existing, config)

        stats = compute_statistics(dataset, issues)

        assert stats.duplicates == 1
        assert stats.invalid == 1
        assert stats.warnings == 0

    def test_no_dataset(self):
        assert compute_statistics(None, []) == ImportStatistics()

    def test_gate_blocks_errors_without_skip(self):
        stats = ImportStatistics(total=2, valid=1, invalid=1)

        assert can_proceed_to_preview(stats, ImportConfiguration(skip_duplicates=False)) is False
        assert can_proceed_to_preview(stats, ImportConfiguration(skip_duplicates=True)) is True

    def test_gate_open_without_errors(self):
        stats = ImportStatistics(total=2, valid=2)

        assert can_proceed_to_preview(stats, ImportConfiguration(skip_duplicates=False)) is True

    def test_error_rows(self):
        issues = [
            ValidationIssue(row=0, field="hsn_code", message="m", severity=Severity.WARNING, code=IssueCode.INVALID_FORMAT),
            ValidationIssue(row=2, field="name", message="m", severity=Severity.ERROR, code=IssueCode.REQUIRED),
        ]

        assert error_row_indices(issues) == {2}


class TestHelpers:
    """Tests for lookup helpers."""

    def test_existing_name_index_first_record_wins(self):
        index = existing_name_index([
            {"id": "1", "name": "Silk"},
            {"id": "2", "name": "SILK"},
            {"id": "3", "name": ""},
        ])

        assert index == {"silk": "1"}

    def test_as_number(self):
        assert as_number("12.5") == 12.5
        assert as_number(True) is None
        assert as_number("abc") is None
        assert as_number(None) is None

"""
Unit tests for the mapping review workflow.
"""

import asyncio

import pytest

from exceptions import (
    InvalidWorkflowTransitionError,
    RequiredFieldsUnmappedError,
    UnknownSourceColumnError,
    UnknownTargetFieldError,
)
from models.candidate import required_field_ids
from models.mapping import FieldStatus, SourceDataset, SuggestionSource, WorkflowState
from services.column_matcher import suggest_mapping
from services.mapping_suggester_service import MappingSuggesterService
from services.mapping_workflow import (
    AI_FAILED_WARNING,
    DO_NOT_IMPORT,
    MappingWorkflow,
    are_required_fields_mapped,
    field_statuses,
    find_duplicate_mappings,
    missing_required_fields,
    review_rows,
    start_workflow,
)
from tests.factories import FakeAnthropicClient, make_api_connection_error


HEADERS = ["Full Name", "Email ID", "Mobile", "Location", "Tech", "Experience"]
ROWS = [
    ["Jane Doe", "jane@x.com", "555-1111", "Berlin", "Python", 5.0],
    ["John Roe", "john@x.com", "555-2222", "Madrid", "Go", 3.0],
]
FULL_MAPPING = {
    "Full Name": "Name",
    "Email ID": "Email",
    "Mobile": "Phone",
    "Location": "Location",
    "Tech": "Tech",
    "Experience": "Number of Experience",
}


@pytest.fixture
def dataset():
    return SourceDataset(
        filename="candidates.xlsx",
        headers=list(HEADERS),
        sample_rows=ROWS[:1],
        all_rows=ROWS,
    )


@pytest.fixture
def workflow(dataset):
    """Workflow in mapping with an empty mapping."""
    wf = MappingWorkflow(dataset, user_id="user-123")
    wf.finish_analysis({}, SuggestionSource.NONE)
    return wf


@pytest.fixture
def review_workflow(workflow):
    workflow.update_mapping(FULL_MAPPING)
    workflow.proceed_to_review()
    return workflow


# ===================
# PURE HELPERS
# ===================

class TestRequiredFields:
    """Tests for are_required_fields_mapped() / missing_required_fields()"""

    def test_full_mapping_passes(self):
        assert are_required_fields_mapped(FULL_MAPPING) is True

    def test_missing_tech_fails(self):
        mapping = {k: v for k, v in FULL_MAPPING.items() if v != "Tech"}

        assert are_required_fields_mapped(mapping) is False
        assert missing_required_fields(mapping) == ["Tech"]

    def test_unrelated_additions_do_not_change_result(self):
        mapping = {**FULL_MAPPING, "Salary": "Currency Sal", "Notes": None}

        assert are_required_fields_mapped(mapping) is True

    def test_removing_sole_mapping_flips_result(self):
        mapping = dict(FULL_MAPPING)
        mapping["Mobile"] = None

        assert are_required_fields_mapped(mapping) is False
        assert missing_required_fields(mapping) == ["Phone"]

    def test_do_not_import_counts_as_unmapped(self):
        mapping = {**FULL_MAPPING, "Mobile": DO_NOT_IMPORT}

        assert "Phone" in missing_required_fields(mapping)

    def test_empty_mapping_lists_all_required(self):
        assert missing_required_fields({}) == required_field_ids()


class TestFindDuplicateMappings:
    """Tests for find_duplicate_mappings()"""

    def test_two_columns_one_target(self):
        mapping = {"Email": "Email", "Work Email": "Email", "Name": "Name"}

        assert find_duplicate_mappings(mapping) == {"Email": ["Email", "Work Email"]}

    def test_columns_in_file_order(self):
        mapping = {"A": "Email", "B": "Email"}

        assert find_duplicate_mappings(mapping, headers=["B", "A"]) == {"Email": ["B", "A"]}

    def test_skipped_columns_ignored(self):
        mapping = {"A": None, "B": None, "C": DO_NOT_IMPORT, "D": DO_NOT_IMPORT, "E": ""}

        assert find_duplicate_mappings(mapping) == {}

    def test_no_duplicates(self):
        assert find_duplicate_mappings(FULL_MAPPING) == {}


class TestFieldStatuses:
    """Tests for field_statuses()"""

    def test_statuses(self):
        mapping = {k: v for k, v in FULL_MAPPING.items() if v != "Tech"}

        statuses = {s.field_id: s for s in field_statuses(mapping, HEADERS)}

        assert statuses["Name"].status == FieldStatus.MAPPED
        assert statuses["Name"].mapped_from == ["Full Name"]
        assert statuses["Tech"].status == FieldStatus.REQUIRED
        assert statuses["Currency Sal"].status == FieldStatus.UNMAPPED
        assert statuses["Data Source"].status == FieldStatus.AUTO

    def test_covers_whole_catalog(self):
        assert len(field_statuses({})) == 11


class TestReviewRows:
    """Tests for review_rows()"""

    def test_rows_show_source_and_sample(self, dataset):
        rows = {r.field_id: r for r in review_rows(FULL_MAPPING, dataset)}

        assert rows["Name"].mapped_from == "Full Name"
        assert rows["Name"].sample == "Jane Doe"
        assert rows["Number of Experience"].sample == "5"
        assert rows["Data Source"].sample == "From filename"
        assert rows["When Data is loaded in database"].sample == "Current date"
        assert rows["Currency Sal"].mapped_from is None
        assert rows["Currency Sal"].sample is None

    def test_duplicate_uses_first_column(self, dataset):
        mapping = {**FULL_MAPPING, "Location": "Name"}

        rows = {r.field_id: r for r in review_rows(mapping, dataset)}

        assert rows["Name"].mapped_from == "Full Name"


# ===================
# STATE MACHINE
# ===================

class TestAnalysis:
    """Tests for the analyzing -> mapping step"""

    def test_starts_analyzing(self, dataset):
        wf = MappingWorkflow(dataset, user_id="user-123")

        assert wf.state == WorkflowState.ANALYZING
        assert wf.workflow_id

    def test_finish_analysis_enters_mapping(self, dataset):
        wf = MappingWorkflow(dataset, user_id="user-123")

        wf.finish_analysis({"Full Name": "Name"}, SuggestionSource.AI)

        assert wf.state == WorkflowState.MAPPING
        assert wf.mapping == {"Full Name": "Name"}
        assert wf.suggested_by == SuggestionSource.AI

    def test_failed_suggestion_enters_mapping_with_warning(self, dataset):
        wf = MappingWorkflow(dataset, user_id="user-123")

        wf.finish_analysis(None, SuggestionSource.AI, warning="AI failed")

        assert wf.state == WorkflowState.MAPPING
        assert wf.mapping == {}
        assert wf.suggested_by == SuggestionSource.NONE
        assert wf.warnings == ["AI failed"]

    def test_finish_analysis_only_once(self, workflow):
        with pytest.raises(InvalidWorkflowTransitionError):
            workflow.finish_analysis({}, SuggestionSource.NONE)


class TestEditing:
    """Tests for mapping edits"""

    def test_set_column(self, workflow):
        workflow.set_column("Full Name", "Name")

        assert workflow.mapping == {"Full Name": "Name"}

    def test_set_column_do_not_import(self, workflow):
        workflow.set_column("Mobile", DO_NOT_IMPORT)

        assert workflow.mapping == {"Mobile": None}

    def test_unknown_column_rejected(self, workflow):
        with pytest.raises(UnknownSourceColumnError):
            workflow.set_column("Surname", "Name")

    def test_unknown_field_rejected(self, workflow):
        with pytest.raises(UnknownTargetFieldError):
            workflow.set_column("Full Name", "first_name")

    def test_auto_populated_field_rejected(self, workflow):
        with pytest.raises(UnknownTargetFieldError):
            workflow.set_column("Location", "Data Source")

    def test_update_mapping_is_all_or_nothing(self, workflow):
        workflow.set_column("Full Name", "Name")

        with pytest.raises(UnknownSourceColumnError):
            workflow.update_mapping({"Email ID": "Email", "Bogus": "Tech"})

        assert workflow.mapping == {"Full Name": "Name"}

    def test_update_mapping_merges(self, workflow):
        workflow.set_column("Full Name", "Name")

        workflow.update_mapping({"Email ID": "Email"})

        assert workflow.mapping == {"Full Name": "Name", "Email ID": "Email"}

    def test_update_mapping_replace(self, workflow):
        workflow.set_column("Full Name", "Name")

        workflow.update_mapping({"Email ID": "Email"}, replace=True)

        assert workflow.mapping == {"Email ID": "Email"}

    def test_reset_mapping(self, workflow):
        workflow.update_mapping(FULL_MAPPING)

        workflow.reset_mapping()

        assert workflow.mapping == {}
        assert workflow.suggested_by == SuggestionSource.NONE

    def test_apply_fuzzy_match_replaces_mapping(self, workflow):
        workflow.set_column("Mobile", "Phone")

        workflow.apply_fuzzy_match()

        assert workflow.mapping == suggest_mapping(HEADERS)
        assert "Mobile" not in workflow.mapping
        assert workflow.suggested_by == SuggestionSource.FUZZY

    def test_edits_rejected_in_review(self, review_workflow):
        for edit in (
            lambda: review_workflow.set_column("Full Name", None),
            review_workflow.reset_mapping,
            review_workflow.apply_fuzzy_match,
        ):
            with pytest.raises(InvalidWorkflowTransitionError):
                edit()

        assert review_workflow.mapping == FULL_MAPPING


class TestTransitions:
    """Tests for review/complete/cancel transitions"""

    def test_review_blocked_lists_missing(self, workflow):
        workflow.update_mapping({k: v for k, v in FULL_MAPPING.items() if v != "Tech"})

        with pytest.raises(RequiredFieldsUnmappedError) as exc_info:
            workflow.proceed_to_review()

        assert exc_info.value.missing_fields == ["Tech"]
        assert exc_info.value.status_code == 422
        assert workflow.state == WorkflowState.MAPPING

    def test_review_allowed_when_required_mapped(self, review_workflow):
        assert review_workflow.state == WorkflowState.REVIEW

    def test_back_to_mapping(self, review_workflow):
        review_workflow.back_to_mapping()

        assert review_workflow.state == WorkflowState.MAPPING

    def test_back_only_from_review(self, workflow):
        with pytest.raises(InvalidWorkflowTransitionError):
            workflow.back_to_mapping()

    def test_complete_returns_mapping(self, review_workflow):
        mapping = review_workflow.complete()

        assert mapping == FULL_MAPPING
        assert review_workflow.state == WorkflowState.COMPLETE

    def test_complete_requires_review(self, workflow):
        workflow.update_mapping(FULL_MAPPING)

        with pytest.raises(InvalidWorkflowTransitionError):
            workflow.complete()

    def test_cancel_discards_data(self, review_workflow):
        review_workflow.cancel()

        assert review_workflow.state == WorkflowState.CANCELLED
        assert review_workflow.mapping == {}
        assert review_workflow.dataset is None

    def test_cancel_from_mapping(self, workflow):
        workflow.cancel()

        assert workflow.state == WorkflowState.CANCELLED

    def test_no_cancel_after_complete(self, review_workflow):
        review_workflow.complete()

        with pytest.raises(InvalidWorkflowTransitionError):
            review_workflow.cancel()


class TestViews:
    """Tests for to_response() and progress"""

    def test_mapping_view(self, workflow):
        workflow.update_mapping({"Full Name": "Name", "Email ID": "Name"})

        view = workflow.to_response()

        assert view.state == WorkflowState.MAPPING
        assert view.total_rows == 2
        assert view.sample_rows == [["Jane Doe", "jane@x.com", "555-1111", "Berlin", "Python", "5"]]
        assert view.duplicates[0].field_id == "Name"
        assert view.duplicates[0].columns == ["Full Name", "Email ID"]
        assert view.can_review is False
        assert "Email" in view.missing_required_fields
        assert view.review == []

    def test_review_view_has_review_table(self, review_workflow):
        view = review_workflow.to_response(expires_in_minutes=15)

        assert view.can_review is True
        assert len(view.review) == 11
        assert view.expires_in_minutes == 15

    def test_record_progress(self, workflow):
        workflow.record_progress(5, 20)

        assert workflow.progress.percent == 25.0
        assert workflow.to_response().progress.processed == 5

    def test_record_progress_empty_upload(self, workflow):
        workflow.record_progress(0, 0)

        assert workflow.progress.percent == 100.0


class TestStartWorkflow:
    """Tests for start_workflow()"""

    def test_fuzzy_suggestion(self, dataset):
        wf = asyncio.run(start_workflow(dataset, "user-123", use_ai=False))

        assert wf.state == WorkflowState.MAPPING
        assert wf.suggested_by == SuggestionSource.FUZZY
        assert wf.mapping["Full Name"] == "Name"

    def test_ai_suggestion(self, dataset):
        client = FakeAnthropicClient('{"Full Name": "Name", "Mobile": "Phone"}')
        suggester = MappingSuggesterService(client=client, retry_base_delay=0)

        wf = asyncio.run(start_workflow(dataset, "user-123", suggester=suggester, use_ai=True))

        assert wf.suggested_by == SuggestionSource.AI
        assert wf.mapping == {"Full Name": "Name", "Mobile": "Phone"}
        assert wf.warnings == []

    def test_ai_failure_falls_back_to_manual(self, dataset):
        client = FakeAnthropicClient(make_api_connection_error())
        suggester = MappingSuggesterService(client=client, max_retries=2, retry_base_delay=0)

        wf = asyncio.run(start_workflow(dataset, "user-123", suggester=suggester, use_ai=True))

        assert wf.state == WorkflowState.MAPPING
        assert wf.mapping == {}
        assert wf.warnings == [AI_FAILED_WARNING]

    def test_unexpected_suggester_error_falls_back_to_manual(self, dataset):
        client = FakeAnthropicClient(TypeError("create() got an unexpected keyword argument"))
        suggester = MappingSuggesterService(client=client, max_retries=2, retry_base_delay=0)

        wf = asyncio.run(start_workflow(dataset, "user-123", suggester=suggester, use_ai=True))

        assert wf.state == WorkflowState.MAPPING
        assert wf.mapping == {}
        assert wf.suggested_by == SuggestionSource.NONE
        assert wf.warnings == [AI_FAILED_WARNING]

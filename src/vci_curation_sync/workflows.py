from __future__ import annotations

from typing import Mapping

from .models import FieldSelection, WorkflowKind, WorkflowStep
from .portal.selectors import PortalSelectors


_SEL = PortalSelectors()

STATUS_FILTERS: Mapping[WorkflowKind, tuple[str, ...]] = {
    WorkflowKind.APPROVE: ("IN PROGRESS", "PROVISIONAL"),
    WorkflowKind.EXTRACT: ("APPROVED",),
}

# Labels are matched exactly; the trailing spaces in the "Submit ..." buttons are really in the VCI markup.
APPROVE_WORKFLOW: tuple[WorkflowStep, ...] = (
    WorkflowStep(name="initial", diagnostic_name="1-initial"),
    WorkflowStep(
        name="view_summary",
        trigger_selector=_SEL.view_summary,
        await_label="Save",
        diagnostic_name="2-view-summary",
    ),
    WorkflowStep(name="save", trigger_label="Save", await_label="Preview Provisional", diagnostic_name="3-save"),
    WorkflowStep(
        name="preview_provisional",
        trigger_label="Preview Provisional",
        await_label="Submit Provisional ",
        diagnostic_name="4-preview-provisional",
    ),
    WorkflowStep(
        name="submit_provisional",
        trigger_label="Submit Provisional ",
        await_label="Preview Approval",
        diagnostic_name="5-submit-provisional",
    ),
    WorkflowStep(
        name="preview_approval",
        trigger_label="Preview Approval",
        await_label="Submit Approval ",
        diagnostic_name="6-preview-approval",
        field_selections=(FieldSelection(selector=_SEL.approver_select, value="{approver}", kind="select"),),
    ),
    WorkflowStep(
        name="submit_approval",
        trigger_label="Submit Approval ",
        await_label="ClinVar Submission Data",
        diagnostic_name="7-submit-approval",
    ),
)

EXTRACT_WORKFLOW: tuple[WorkflowStep, ...] = (
    WorkflowStep(
        name="view_summary",
        trigger_selector=_SEL.view_summary,
        await_label="ClinVar Submission Data",
        diagnostic_name="1-view-summary",
    ),
    WorkflowStep(
        name="clinvar_submission_data",
        trigger_label="ClinVar Submission Data",
        await_label="Generate",
        diagnostic_name="2-clinvar-submission-data",
    ),
    WorkflowStep(
        name="generate",
        trigger_label="Generate",
        await_selector=_SEL.results_table,
        diagnostic_name="3-generate",
    ),
)

WORKFLOWS: Mapping[WorkflowKind, tuple[WorkflowStep, ...]] = {
    WorkflowKind.APPROVE: APPROVE_WORKFLOW,
    WorkflowKind.EXTRACT: EXTRACT_WORKFLOW,
}

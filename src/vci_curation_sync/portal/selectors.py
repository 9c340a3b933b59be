from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PortalSelectors:
    """
    The VCI is a React app with few ids; selectors may change between releases.
    Keep all UI selectors here for easy maintenance.
    """

    # Login (Auth0 lock modal). The header login link differs per environment, see DomainConfig.
    login_email_input: str = ".auth0-lock-input-email .auth0-lock-input"
    login_password_input: str = ".auth0-lock-input-password .auth0-lock-input"
    login_submit: str = ".auth0-lock-submit"

    # Dashboard: affiliated interpretation list
    interpretation_rows: str = ".affiliated-interpretation-list tbody tr"
    row_status_label: str = ".label"
    row_record_link: str = ".affiliated-record-link"

    # Record page
    view_summary: str = ".view-summary"
    # Every actionable control on a record page carries the `btn` class; labels live in innerText or value.
    action_controls: str = ".btn"
    approver_select: str = ".form-control"

    # ClinVar submission data
    results_table: str = ".clinvar-submission-data table"

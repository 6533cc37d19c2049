"""Tests for parsing the summary pass's response."""

from codepress_core.models import IssueItem, RiskItem
from codepress_core.xml_parser import parse_summary_response

SUMMARY_RESPONSE = """
<global>
  <prType>bugfix</prType>
  <overview>
    <item>Fixes the retry loop.</item>
    <item>Adds a guard.</item>
  </overview>
  <keyRisks>
    <item tag="PERF">Extra query per request.</item>
    <item>Untagged risks are dropped.</item>
  </keyRisks>
  <decision>
    <recommendation>REQUEST_CHANGES</recommendation>
    <reasoning>Retry can loop forever.</reasoning>
  </decision>
  <prDescription>
    ## Summary
    Fixes retries.
  </prDescription>
</global>
<hunks>
  <hunk index="0">
    <file>src/app.py</file>
    <overview>Adds an early return.</overview>
    <risks><item tag="ARCH">Couples modules.</item></risks>
    <issues>
      <issue severity="required" kind="bug">Leaks the handle.</issue>
      <issue kind="bug">No severity, dropped.</issue>
    </issues>
    <tests><item>Cover the early return.</item></tests>
  </hunk>
  <hunk index="x"><file>a.py</file><overview>Bad index.</overview></hunk>
  <hunk index="2"><file>README.md</file></hunk>
</hunks>
"""


class TestParseSummaryResponse:
    def test_global_fields(self):
        summary = parse_summary_response(SUMMARY_RESPONSE)
        assert summary.pr_type == "bugfix"
        assert summary.summary_points == ["Fixes the retry loop.", "Adds a guard."]
        assert summary.key_risks == [RiskItem(tag="PERF", description="Extra query per request.")]

    def test_decision(self):
        decision = parse_summary_response(SUMMARY_RESPONSE).decision
        assert decision.recommendation == "REQUEST_CHANGES"
        assert decision.reasoning == "Retry can loop forever."

    def test_pr_description_dedented(self):
        assert parse_summary_response(SUMMARY_RESPONSE).pr_description == "## Summary\nFixes retries."

    def test_incomplete_hunks_dropped(self):
        hunks = parse_summary_response(SUMMARY_RESPONSE).hunks
        assert [h.index for h in hunks] == [0]

    def test_hunk_details(self):
        hunk = parse_summary_response(SUMMARY_RESPONSE).hunk_for(0)
        assert hunk.file == "src/app.py"
        assert hunk.overview == "Adds an early return."
        assert hunk.risks == [RiskItem(tag="ARCH", description="Couples modules.")]
        assert hunk.issues == [IssueItem(severity="required", kind="bug", description="Leaks the handle.")]
        assert hunk.tests == ["Cover the early return."]

    def test_hunk_for_missing_index(self):
        assert parse_summary_response(SUMMARY_RESPONSE).hunk_for(2) is None

    def test_invalid_recommendation_keeps_default(self):
        summary = parse_summary_response(
            "<global><decision><recommendation>MAYBE</recommendation></decision></global>"
        )
        assert summary.decision.recommendation == "COMMENT"
        assert summary.decision.reasoning == "No specific reasoning provided"

    def test_top_level_fields_without_global(self):
        summary = parse_summary_response(
            "<prType>docs</prType><decision><recommendation>APPROVE</recommendation></decision>"
        )
        assert summary.pr_type == "docs"
        assert summary.decision.recommendation == "APPROVE"

    def test_empty_response_gives_defaults(self):
        summary = parse_summary_response("")
        assert summary.pr_type == "unknown"
        assert summary.summary_points == []
        assert summary.hunks == []
        assert summary.decision.recommendation == "COMMENT"
        assert summary.pr_description is None

"""Tests for the file relevance ranker."""

from datetime import datetime, timezone

import pytest

from assistant.retriever.relevance import (
    CandidateFile,
    expand_keywords,
    recency_bonus,
    select_top_relevant_files,
    tokenize,
)

NOW = datetime(2024, 6, 30, tzinfo=timezone.utc)


def _candidates(*names):
    return [CandidateFile(id=str(i), name=n) for i, n in enumerate(names)]


class TestKeywords:
    def test_tokenize_drops_short_and_symbols(self):
        assert tokenize("What's the P&L, Q2?") == ["what", "the", "p&l", "q2"]

    def test_empty_query(self):
        assert tokenize("") == []
        assert expand_keywords("") == set()

    def test_balance_sheet_expansion(self):
        keywords = expand_keywords("balance sheet Q2")
        assert {"balance", "sheet", "q2", "bs", "sofp", "balance_sheet"} <= keywords
        assert "ebitda" not in keywords

    def test_profit_expansion(self):
        keywords = expand_keywords("monthly profit")
        assert {"p&l", "pnl", "income", "monthly"} <= keywords


class TestRecency:
    def test_recent_file(self):
        assert recency_bonus("2024-06-20T10:00:00Z", NOW) == 2

    def test_semi_recent_file(self):
        assert recency_bonus("2024-04-01T00:00:00-07:00", NOW) == 1

    def test_old_file(self):
        assert recency_bonus("2023-01-01T00:00:00Z", NOW) == 0

    @pytest.mark.parametrize("value", [None, "", "not-a-date"])
    def test_missing_or_bad_timestamp(self, value):
        assert recency_bonus(value, NOW) == 0


class TestSelectTopRelevantFiles:
    def test_balance_sheet_ranks_first(self):
        candidates = _candidates("Payroll_Report.xlsx", "Q2_Summary.docx", "BS_2024.pdf")
        result = select_top_relevant_files("balance sheet Q2", candidates, 3, now=NOW)
        assert result[0].name == "BS_2024.pdf"
        assert [c.name for c in result] == ["BS_2024.pdf", "Q2_Summary.docx", "Payroll_Report.xlsx"]

    def test_top_two_by_score_then_name(self):
        candidates = _candidates(
            "Notes.txt",
            "Forecast_Cash.xlsx",
            "Budget_2024.xlsx",
            "Cash_Flow_Budget.xlsx",
            "Cash_Forecast.xlsx",
        )
        result = select_top_relevant_files("cash flow budget", candidates, 2, now=NOW)
        assert [c.name for c in result] == ["Cash_Flow_Budget.xlsx", "Cash_Forecast.xlsx"]

    def test_recency_breaks_equal_name_scores(self):
        candidates = [
            CandidateFile(id="old", name="A_report.pdf", modified_at="2022-01-01T00:00:00Z"),
            CandidateFile(id="new", name="B_report.pdf", modified_at="2024-06-25T00:00:00Z"),
        ]
        result = select_top_relevant_files("report", candidates, 1, now=NOW)
        assert result[0].id == "new"

    def test_deterministic(self):
        candidates = _candidates("a.pdf", "b.pdf", "c.pdf", "kpi.xlsx")
        first = select_top_relevant_files("kpi dashboard", candidates, 4, now=NOW)
        second = select_top_relevant_files("kpi dashboard", list(reversed(candidates)), 4, now=NOW)
        assert [c.id for c in first] == [c.id for c in second]

    def test_distinct_ids(self):
        candidates = [
            CandidateFile(id="1", name="ledger.xlsx"),
            CandidateFile(id="1", name="ledger.xlsx"),
            CandidateFile(id="2", name="other.xlsx"),
        ]
        result = select_top_relevant_files("general ledger", candidates, 3, now=NOW)
        assert [c.id for c in result] == ["1", "2"]

    def test_respects_max_results(self):
        candidates = _candidates(*[f"file_{i}.txt" for i in range(10)])
        assert len(select_top_relevant_files("anything", candidates, 4, now=NOW)) == 4
        assert select_top_relevant_files("anything", candidates, 0, now=NOW) == []
        assert select_top_relevant_files("anything", [], 3, now=NOW) == []

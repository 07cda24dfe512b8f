"""Tests for the comparison text report and bar chart."""

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402

from pagereport import format_comparison_report, plot_comparison  # noqa: E402

RESULTS = {
    "FIFO": {"faults": 9, "fault_rate": 75.0},
    "LRU": {"faults": 10, "fault_rate": 250 / 3},
    "LIRS": {"faults": 8, "fault_rate": 200 / 3},
    "ARC": {"faults": -1, "fault_rate": -1.0, "error": "bookkeeping went wrong"},
}
PAGES = [1, 2, 3, 4, 1, 2, 5, 1, 2, 3, 4, 5]


class TestFormatComparisonReport:
    def test_sorted_by_faults(self):
        report = format_comparison_report(RESULTS, PAGES, 3)
        lines = report.splitlines()
        table = lines[lines.index("-" * 45) + 1:]
        assert [line.split()[0] for line in table[:3]] == ["LIRS", "FIFO", "LRU"]
        assert "LIRS            8               66.67%" in report

    def test_parameters_and_best(self):
        report = format_comparison_report(RESULTS, PAGES, 3)
        assert "- Page Reference String: [1, 2, 3, 4, 1, 2, 5, 1, 2, 3, 4, 5]" in report
        assert "- Number of Pages: 12" in report
        assert "- Frame Size: 3" in report
        assert "Best Algorithm: LIRS with 8 page faults (66.67% fault rate)" in report

    def test_failed_algorithm_listed_as_error(self):
        report = format_comparison_report(RESULTS, PAGES, 3)
        assert "ARC             ERROR           bookkeeping went wrong" in report
        assert "Best Algorithm: ARC" not in report

    def test_long_reference_string_truncated(self):
        report = format_comparison_report(RESULTS, list(range(30)), 3)
        assert "[0, 1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 11, 12, 13, 14, 15, 16, 17, 18, 19...]" in report
        assert "- Number of Pages: 30" in report

    def test_descriptions_included(self):
        report = format_comparison_report(RESULTS, PAGES, 3)
        assert "FIFO: First In, First Out - Replaces the oldest page in memory" in report


class TestPlotComparison:
    def test_one_bar_per_successful_algorithm(self):
        fig = plot_comparison(RESULTS)
        ax = fig.axes[0]
        assert [t.get_text() for t in ax.get_xticklabels()] == ["FIFO", "LRU", "LIRS"]
        assert [p.get_height() for p in ax.patches] == [9, 10, 8]
        plt.close(fig)

    def test_saves_to_path(self, tmp_path):
        path = tmp_path / "comparison.png"
        fig = plot_comparison(RESULTS, str(path))
        assert path.exists()
        plt.close(fig)

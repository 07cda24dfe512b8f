"""Tests for reference string parsing, the simulation harness and the demo CLI."""

import pytest

import pagesim
from pageerrors import (
    InvalidConfigError,
    ParseError,
    PolicyInvariantError,
    SimulationError,
    UnknownPolicyError,
)
from pagepolicies import PageReplacementAlgorithm
from pagesim import (
    HistoryRecorder,
    ReferenceStream,
    compare_all_algorithms,
    comparison_to_dict,
    get_algorithm_description,
    get_available_algorithms,
    main,
    parse_reference_string,
    run_single_simulation,
)

BELADY = [1, 2, 3, 4, 1, 2, 5, 1, 2, 3, 4, 5]
MIXED = [(i * 5 + i // 4) % 7 for i in range(40)]
ALL = ["FIFO", "LRU", "Clock", "Adaptive", "LFU", "ARC", "LIRS"]


class BrokenAlgorithm(PageReplacementAlgorithm):
    name = "Broken"

    def step(self, page, frames):
        raise PolicyInvariantError("bookkeeping went wrong")


# -- Reference strings ---------------------------------------------------------


class TestReferenceStream:
    def test_parse_skips_malformed_tokens(self):
        stream = parse_reference_string("1, 2,x, 3,,-4 5")
        assert list(stream) == [1, 2, 3, 5]

    def test_parse_accepts_plain_digits_only(self):
        stream = parse_reference_string("1_0, +3, ٣, 4 007")
        assert list(stream) == [4, 7]

    def test_parse_nothing_valid_raises(self):
        with pytest.raises(ParseError):
            parse_reference_string("a, b, -1")

    def test_empty_stream_raises(self):
        with pytest.raises(ParseError):
            ReferenceStream([])

    @pytest.mark.parametrize("bad", [-1, 1.5, "3", True])
    def test_invalid_page_raises(self, bad):
        with pytest.raises(ParseError):
            ReferenceStream([1, bad])

    def test_errors_share_a_base(self):
        assert issubclass(ParseError, SimulationError)
        assert issubclass(InvalidConfigError, ValueError)
        assert issubclass(UnknownPolicyError, KeyError)


# -- Single runs ---------------------------------------------------------------


class TestRunSingleSimulation:
    def test_unknown_algorithm(self):
        with pytest.raises(UnknownPolicyError, match="Optimal"):
            run_single_simulation("Optimal", BELADY, 3)

    @pytest.mark.parametrize("frame_size", [0, -2, 2.5, None])
    def test_invalid_frame_count(self, frame_size):
        with pytest.raises(InvalidConfigError):
            run_single_simulation("FIFO", BELADY, frame_size)

    def test_empty_pages(self):
        with pytest.raises(ParseError):
            run_single_simulation("LRU", [], 3)

    def test_accepts_reference_string_text(self):
        result = run_single_simulation("FIFO", "1,2,3,4,1,2,5,1,2,3,4,5", 3)
        assert result.total_faults == 9

    @pytest.mark.parametrize("name, expected", [
        ("FIFO", 9), ("LRU", 10), ("Clock", 10), ("Adaptive", 10),
        ("LFU", 10), ("ARC", 10), ("LIRS", 8),
    ])
    def test_belady_fault_counts(self, name, expected):
        assert run_single_simulation(name, BELADY, 3).total_faults == expected

    @pytest.mark.parametrize("name", ALL)
    def test_history_matches_stream(self, name):
        result = run_single_simulation(name, MIXED, 3)
        assert len(result.fault_history) == len(MIXED)
        assert len(result.history) == len(MIXED)
        assert result.total_faults == sum(result.fault_history)
        assert all(len(frames) <= 3 for frames in result.history)

    @pytest.mark.parametrize("name", ALL)
    def test_distinct_pages_fault_once_each(self, name):
        result = run_single_simulation(name, [1, 2, 3, 4, 1, 2, 3, 4, 4, 1], 4)
        assert result.total_faults == 4

    @pytest.mark.parametrize("name", ALL)
    def test_repeat_runs_are_identical(self, name):
        first = run_single_simulation(name, MIXED, 3)
        second = run_single_simulation(name, MIXED, 3)
        assert first.steps == second.steps
        assert first.total_faults == second.total_faults

    def test_history_is_a_copy(self):
        result = run_single_simulation("FIFO", BELADY, 3)
        history = result.history
        history[0].append(99)
        assert result.history[0] == [1]
        assert result.steps[0].frames == (1,)

    def test_clock_pointer_and_bits(self):
        result = run_single_simulation("Clock", BELADY, 3)
        assert result.pointer_history == [0, 0, 0, 1, 2, 0, 1, 1, 1, 1, 2, 0]
        assert result.ref_bits_history[8] == [0, 1, 1]

    def test_adaptive_algo_history(self):
        result = run_single_simulation("Adaptive", BELADY, 3)
        assert result.algo_history == ["FIFO"] * 5 + ["LRU"] * 7

    def test_ml_alias_runs_lru(self):
        ml = run_single_simulation("ML", MIXED, 3)
        lru = run_single_simulation("LRU", MIXED, 3)
        assert ml.algorithm_name == "ML"
        assert ml.history == lru.history

    def test_fault_rate_and_hits(self):
        result = run_single_simulation("FIFO", BELADY, 3)
        assert result.hits == 3
        assert result.fault_rate == pytest.approx(75.0)

    def test_to_dict_arc(self):
        data = run_single_simulation("ARC", BELADY, 3).to_dict()
        assert data["totalFaults"] == 10
        assert data["adaptiveParameter"] == 1
        assert (data["T1Size"], data["T2Size"], data["B1Size"], data["B2Size"]) == (0, 3, 2, 0)
        assert data["pointerHistory"] == []
        assert data["history"][-1] == [1, 2, 5]

    def test_to_dict_lirs(self):
        data = run_single_simulation("LIRS", BELADY, 3).to_dict()
        assert (data["LIRCount"], data["HIRCount"], data["stackSize"]) == (2, 1, 2)
        assert data["algoHistory"] == []

    def test_to_dict_lfu_frequencies(self):
        data = run_single_simulation("LFU", [1, 1, 1, 2, 2, 2, 3, 3, 3, 1, 1, 1], 2).to_dict()
        assert data["frequencies"] == [[3, 3], [1, 3]]

    def test_invariant_error_propagates(self, monkeypatch):
        monkeypatch.setitem(pagesim.ALGORITHMS, "FIFO", BrokenAlgorithm)
        with pytest.raises(PolicyInvariantError):
            run_single_simulation("FIFO", BELADY, 3)


class TestHistoryRecorder:
    def test_records_snapshot_not_alias(self):
        from pagepolicies import FrameSet
        frames = FrameSet(2)
        frames.add(1)
        recorder = HistoryRecorder()
        recorder.record(1, frames, True, {})
        frames.add(2)
        assert recorder.steps[0].frames == (1,)
        assert len(recorder) == 1

    def test_steps_are_hashable(self):
        result = run_single_simulation("Clock", BELADY, 3)
        assert len({hash(step) for step in result.steps}) > 1
        assert result.steps[0] in set(result.steps)

    def test_extras_lookup(self):
        step = run_single_simulation("Clock", BELADY, 3).steps[8]
        assert step.extra("pointer") == 1
        assert list(step.extra("ref_bits")) == [0, 1, 1]
        assert step.extra("algorithm") is None
        assert step.extra("algorithm", "none") == "none"


# -- Comparison ----------------------------------------------------------------


class TestCompareAllAlgorithms:
    def test_runs_every_algorithm(self):
        results = compare_all_algorithms(BELADY, 3)
        assert list(results) == ALL
        assert results["FIFO"] == {"faults": 9, "fault_rate": 75.0}

    @pytest.mark.parametrize("frame_size", [1, 2, 4])
    def test_matches_single_runs(self, frame_size):
        results = compare_all_algorithms(MIXED, frame_size)
        for name in ALL:
            single = run_single_simulation(name, MIXED, frame_size)
            assert results[name]["faults"] == single.total_faults
            assert results[name]["fault_rate"] == pytest.approx(single.fault_rate)

    def test_failure_is_isolated(self, monkeypatch):
        monkeypatch.setitem(pagesim.ALGORITHMS, "LFU", BrokenAlgorithm)
        results = compare_all_algorithms(BELADY, 3)
        assert results["LFU"] == {
            "faults": -1,
            "fault_rate": -1.0,
            "error": "bookkeeping went wrong",
        }
        assert results["LIRS"]["faults"] == 8

    def test_validation_still_raises(self):
        with pytest.raises(InvalidConfigError):
            compare_all_algorithms(BELADY, 0)
        with pytest.raises(ParseError):
            compare_all_algorithms([], 3)

    def test_consumer_view_uses_camel_case(self, monkeypatch):
        monkeypatch.setitem(pagesim.ALGORITHMS, "LFU", BrokenAlgorithm)
        data = comparison_to_dict(compare_all_algorithms(BELADY, 3))
        assert list(data) == ALL
        assert data["FIFO"] == {"faults": 9, "faultRate": 75.0}
        assert data["LFU"] == {
            "faults": -1,
            "faultRate": -1.0,
            "error": "bookkeeping went wrong",
        }


class TestRegistry:
    def test_available_algorithms(self):
        assert get_available_algorithms() == ALL

    def test_descriptions(self):
        assert get_algorithm_description("FIFO").startswith("First In, First Out")
        assert "LRU" in get_algorithm_description("ML")
        assert get_algorithm_description("Optimal") == "No description available"


# -- Command line --------------------------------------------------------------


class TestMain:
    def test_compare_prints_report(self, capsys):
        assert main(["--pages", "1,2,3,4,1,2,5,1,2,3,4,5", "--frames", "3"]) == 0
        out = capsys.readouterr().out
        assert "Best Algorithm: LIRS with 8 page faults" in out

    def test_single_algorithm_table(self, capsys):
        assert main(["--algorithm", "FIFO", "--pages", "1,2,1", "--frames", "2"]) == 0
        out = capsys.readouterr().out
        assert "Total Page Faults: 2" in out
        assert "HIT" in out

    def test_bad_input_returns_error_code(self, capsys):
        assert main(["--pages", "x,y"]) == 2
        assert "Error" in capsys.readouterr().err

    def test_unknown_algorithm_returns_error_code(self, capsys):
        assert main(["--algorithm", "Optimal"]) == 2

    def test_plot_written(self, tmp_path, capsys):
        import matplotlib
        matplotlib.use("Agg")
        path = tmp_path / "chart.png"
        assert main(["--frames", "3", "--plot", str(path)]) == 0
        assert path.exists()

#!/usr/bin/env python3
"""
Page Replacement Simulator
Drives the replacement algorithms over a page reference string, records the
frame contents after every access and compares all algorithms side by side
"""

import argparse
import logging
import numbers
import re
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pageerrors import (
    InvalidConfigError,
    ParseError,
    SimulationError,
    UnknownPolicyError,
)
from pagepolicies import ALGORITHMS, ALIASES, FrameSet, PageReplacementAlgorithm
from pagereport import format_comparison_report, plot_comparison

logger = logging.getLogger(__name__)

DEFAULT_FRAME_SIZE = 3
DEFAULT_REFERENCE_STRING = "1,2,3,4,1,2,5,1,2,3,4,5"
PAGE_TOKEN = re.compile(r"[0-9]+")


class ReferenceStream:
    """Validated, immutable page reference string"""

    def __init__(self, pages: Sequence[int]):
        validated = []
        for page in pages:
            if isinstance(page, bool) or not isinstance(page, numbers.Integral) or page < 0:
                raise ParseError(f"Invalid page number: {page!r}")
            validated.append(int(page))
        if not validated:
            raise ParseError("Reference string is empty")
        self.pages: Tuple[int, ...] = tuple(validated)

    def __len__(self) -> int:
        return len(self.pages)

    def __iter__(self):
        return iter(self.pages)

    def __getitem__(self, index):
        return self.pages[index]

    def __eq__(self, other) -> bool:
        if isinstance(other, ReferenceStream):
            return self.pages == other.pages
        return NotImplemented

    def __repr__(self) -> str:
        return f"ReferenceStream({list(self.pages)})"


def parse_reference_string(text: str) -> ReferenceStream:
    """
    Parse a comma or whitespace separated reference string.
    Tokens that are not non-negative integers are skipped
    """
    pages = []
    for token in re.split(r"[,\s]+", text.strip()):
        # Plain ASCII digits only: no sign, no underscores, no other scripts
        if not PAGE_TOKEN.fullmatch(token):
            if token:
                logger.debug("Skipping malformed token %r", token)
            continue
        pages.append(int(token))

    if not pages:
        raise ParseError(f"No valid page numbers in {text!r}")
    return ReferenceStream(pages)


@dataclass(frozen=True)
class StepRecord:
    """Frame contents and fault status right after one access"""
    page: int
    frames: Tuple[int, ...]
    fault: bool
    extras: Tuple[Tuple[str, Any], ...] = ()  # (name, value) pairs

    def extra(self, key: str, default=None):
        for name, value in self.extras:
            if name == key:
                return value
        return default


class HistoryRecorder:
    """Append-only log of one snapshot per access"""

    def __init__(self):
        self.steps: List[StepRecord] = []

    def record(self, page: int, frames: FrameSet, fault: bool, extras: Dict):
        self.steps.append(StepRecord(page, frames.snapshot(), fault, tuple(extras.items())))

    def __len__(self) -> int:
        return len(self.steps)


@dataclass
class SimulationResult:
    """Everything one run produces for the visualization and report layers"""
    algorithm_name: str
    pages: Tuple[int, ...]
    frame_size: int
    total_faults: int
    steps: List[StepRecord]
    summary: Dict = field(default_factory=dict)

    @property
    def history(self) -> List[List[int]]:
        return [list(step.frames) for step in self.steps]

    @property
    def fault_history(self) -> List[bool]:
        return [step.fault for step in self.steps]

    def extra_history(self, key: str) -> List:
        values = (step.extra(key) for step in self.steps)
        return [value for value in values if value is not None]

    @property
    def pointer_history(self) -> List[int]:
        return self.extra_history("pointer")

    @property
    def ref_bits_history(self) -> List[List[int]]:
        return [list(bits) for bits in self.extra_history("ref_bits")]

    @property
    def algo_history(self) -> List[str]:
        return self.extra_history("algorithm")

    @property
    def hits(self) -> int:
        return len(self.pages) - self.total_faults

    @property
    def fault_rate(self) -> float:
        """Page faults as a percentage of all references"""
        return self.total_faults / len(self.pages) * 100

    def to_dict(self) -> Dict:
        """Result in the key layout the visualization layer reads"""
        return {
            "algorithmName": self.algorithm_name,
            "pages": list(self.pages),
            "frameSize": self.frame_size,
            "totalFaults": self.total_faults,
            "history": self.history,
            "faultHistory": self.fault_history,
            "pointerHistory": self.pointer_history,
            "refBitsHistory": self.ref_bits_history,
            "algoHistory": self.algo_history,
            "frequencies": [list(pair) for pair in self.summary.get("frequencies", [])],
            "adaptiveParameter": self.summary.get("adaptive_parameter", 0),
            "T1Size": self.summary.get("t1_size", 0),
            "T2Size": self.summary.get("t2_size", 0),
            "B1Size": self.summary.get("b1_size", 0),
            "B2Size": self.summary.get("b2_size", 0),
            "LIRCount": self.summary.get("lir_count", 0),
            "HIRCount": self.summary.get("hir_count", 0),
            "stackSize": self.summary.get("stack_size", 0),
        }


def get_available_algorithms() -> List[str]:
    return list(ALGORITHMS)


def get_algorithm_description(algorithm_name: str) -> str:
    algo_class = ALGORITHMS.get(algorithm_name) or ALIASES.get(algorithm_name)
    if algo_class is None:
        return "No description available"
    return algo_class.description


def create_algorithm(algorithm_name: str) -> PageReplacementAlgorithm:
    """Fresh algorithm instance for one run"""
    algo_class = ALGORITHMS.get(algorithm_name) or ALIASES.get(algorithm_name)
    if algo_class is None:
        raise UnknownPolicyError(f"Algorithm '{algorithm_name}' not found")
    return algo_class()


def _validate_frame_size(frame_size) -> int:
    if (isinstance(frame_size, bool) or not isinstance(frame_size, numbers.Integral)
            or frame_size <= 0):
        raise InvalidConfigError(f"Frame count must be a positive integer, got {frame_size!r}")
    return int(frame_size)


def _as_stream(pages) -> ReferenceStream:
    if isinstance(pages, ReferenceStream):
        return pages
    if isinstance(pages, str):
        return parse_reference_string(pages)
    return ReferenceStream(pages)


def _simulate(algorithm: PageReplacementAlgorithm, stream: ReferenceStream,
              frame_size: int, recorder: Optional[HistoryRecorder] = None) -> int:
    """Run one algorithm over the whole stream with its own frames, return the fault count"""
    frames = FrameSet(frame_size)
    faults = 0
    for page in stream:
        page_fault = algorithm.step(page, frames)
        if page_fault:
            faults += 1
        if recorder is not None:
            recorder.record(page, frames, page_fault, algorithm.step_extras())
    return faults


def run_single_simulation(algorithm_name: str, pages, frame_size: int) -> SimulationResult:
    """
    Run one page replacement algorithm over a reference string.

    Args:
        algorithm_name: one of get_available_algorithms(), or "ML"
        pages: ReferenceStream, sequence of page numbers or reference string text
        frame_size: number of physical frames

    Returns:
        SimulationResult with a snapshot for every reference
    """
    algorithm = create_algorithm(algorithm_name)
    frame_size = _validate_frame_size(frame_size)
    stream = _as_stream(pages)

    recorder = HistoryRecorder()
    total_faults = _simulate(algorithm, stream, frame_size, recorder)
    logger.info("%s: %d page faults over %d references with %d frames",
                algorithm_name, total_faults, len(stream), frame_size)

    return SimulationResult(
        algorithm_name=algorithm_name,
        pages=stream.pages,
        frame_size=frame_size,
        total_faults=total_faults,
        steps=recorder.steps,
        summary=algorithm.summary(),
    )


def compare_all_algorithms(pages, frame_size: int) -> Dict[str, Dict]:
    """
    Run every algorithm independently over the same reference string.

    Returns a mapping of algorithm name to {'faults', 'fault_rate'}; an
    algorithm that fails gets {'faults': -1, 'fault_rate': -1.0, 'error': msg}
    and the others still run
    """
    frame_size = _validate_frame_size(frame_size)
    stream = _as_stream(pages)

    results = {}
    for algorithm_name, algo_class in ALGORITHMS.items():
        try:
            faults = _simulate(algo_class(), stream, frame_size)
        except Exception as e:
            logger.warning("Error running %s: %s", algorithm_name, e)
            results[algorithm_name] = {
                'faults': -1,
                'fault_rate': -1.0,
                'error': str(e),
            }
        else:
            results[algorithm_name] = {
                'faults': faults,
                'fault_rate': faults / len(stream) * 100,
            }
    return results


def comparison_to_dict(results: Dict[str, Dict]) -> Dict[str, Dict]:
    """Comparison results in the key layout the visualization layer reads"""
    converted = {}
    for algorithm_name, entry in results.items():
        converted[algorithm_name] = {
            "faults": entry["faults"],
            "faultRate": entry["fault_rate"],
        }
        if "error" in entry:
            converted[algorithm_name]["error"] = entry["error"]
    return converted


def print_simulation(result: SimulationResult):
    """Print the step-by-step frame table of a single run"""
    print(f"\n--- {result.algorithm_name} Algorithm ---")
    print(f"Reference String: {list(result.pages)}")
    print(f"Number of Frames: {result.frame_size}")
    print("-" * 60)
    for i, step in enumerate(result.steps):
        status = "FAULT" if step.fault else "HIT"
        print(f"  {i + 1:3d}. Page {step.page:3d}: {status:<5} -> Frames: {list(step.frames)}")
    print(f"Total Page Faults: {result.total_faults}")
    print(f"Page Fault Rate: {result.fault_rate:.2f}%")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Page replacement algorithm simulator")
    parser.add_argument("--pages", default=DEFAULT_REFERENCE_STRING,
                        help="comma separated page reference string")
    parser.add_argument("--frames", type=int, default=DEFAULT_FRAME_SIZE,
                        help="number of physical frames")
    parser.add_argument("--algorithm",
                        help="run a single algorithm instead of comparing all of them")
    parser.add_argument("--plot", metavar="PATH",
                        help="save a bar chart of the comparison to PATH")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        stream = parse_reference_string(args.pages)
        if args.algorithm:
            print_simulation(run_single_simulation(args.algorithm, stream, args.frames))
        else:
            results = compare_all_algorithms(stream, args.frames)
            print(format_comparison_report(results, stream, args.frames))
            if args.plot:
                plot_comparison(results, args.plot)
                print(f"\nGraph saved as '{args.plot}'")
    except SimulationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())

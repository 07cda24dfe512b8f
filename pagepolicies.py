"""
Page replacement algorithms
Implements FIFO, LRU, Clock, LFU, Adaptive (FIFO/LRU switching), ARC and LIRS
over a frame set owned by the simulation harness
"""

import logging
import math
from collections import OrderedDict, deque
from typing import Dict, Iterator, List, Optional, Tuple

from pageerrors import PolicyInvariantError

logger = logging.getLogger(__name__)

# Adaptive switches FIFO -> LRU at 3 faults in the last 5 accesses, back below 3
ADAPTIVE_WINDOW = 5
ADAPTIVE_FAULT_THRESHOLD = 3

# Share of the frames LIRS reserves for LIR pages
LIR_RATIO = 0.99

# LIRS page states
LIR = "LIR"
HIR_RESIDENT = "HIR-resident"
HIR_NON_RESIDENT = "HIR-non-resident"


class FrameSet:
    """Physical frames holding the resident pages of one simulation run"""

    def __init__(self, capacity: int):
        self.capacity = capacity
        self.pages: List[int] = []

    def __contains__(self, page: int) -> bool:
        return page in self.pages

    def __len__(self) -> int:
        return len(self.pages)

    def __iter__(self) -> Iterator[int]:
        return iter(self.pages)

    def is_full(self) -> bool:
        return len(self.pages) >= self.capacity

    def index(self, page: int) -> Optional[int]:
        """Slot holding the page, None if the page is not resident"""
        try:
            return self.pages.index(page)
        except ValueError:
            return None

    def add(self, page: int) -> int:
        """Load a page into the next free frame and return its slot"""
        if page in self.pages:
            raise PolicyInvariantError(f"Page {page} is already resident")
        if self.is_full():
            raise PolicyInvariantError(
                f"Cannot load page {page}: all {self.capacity} frames are occupied")
        self.pages.append(page)
        return len(self.pages) - 1

    def remove(self, page: int):
        slot = self.index(page)
        if slot is None:
            raise PolicyInvariantError(f"Cannot evict page {page}: it is not resident")
        del self.pages[slot]

    def replace_at(self, slot: int, page: int) -> int:
        """Overwrite the page in a slot, return the evicted page"""
        if page in self.pages:
            raise PolicyInvariantError(f"Page {page} is already resident")
        evicted = self.pages[slot]
        self.pages[slot] = page
        return evicted

    def load(self, pages: List[int]):
        """Replace the whole resident set (for algorithms that keep their own lists)"""
        if len(pages) > self.capacity:
            raise PolicyInvariantError(
                f"{len(pages)} resident pages exceed {self.capacity} frames")
        if len(set(pages)) != len(pages):
            raise PolicyInvariantError(f"Duplicate resident pages in {pages}")
        self.pages = list(pages)

    def snapshot(self) -> Tuple[int, ...]:
        return tuple(self.pages)

    def __repr__(self) -> str:
        return f"FrameSet(capacity={self.capacity}, pages={self.pages})"


class PageReplacementAlgorithm:
    """Base class for page replacement algorithms"""

    name = "base"
    description = ""

    def step(self, page: int, frames: FrameSet) -> bool:
        """
        Access a page, updating frames as needed.
        Returns True if the access was a page fault
        """
        raise NotImplementedError

    def step_extras(self) -> Dict:
        """Algorithm state recorded next to each frame snapshot"""
        return {}

    def summary(self) -> Dict:
        """Final bookkeeping values, reported once the run is over"""
        return {}


class FIFOPageReplacement(PageReplacementAlgorithm):
    """First-In-First-Out page replacement"""

    name = "FIFO"
    description = "First In, First Out - Replaces the oldest page in memory"

    def __init__(self):
        self.queue = deque()

    def step(self, page: int, frames: FrameSet) -> bool:
        # Check if page is already in memory
        if page in frames:
            return False

        # Page fault occurred
        if frames.is_full():
            evicted_page = self.queue.popleft()
            frames.remove(evicted_page)
            logger.debug("FIFO evicted page %d for page %d", evicted_page, page)

        frames.add(page)
        self.queue.append(page)
        return True

    def adopt(self, frames: FrameSet):
        """Bring the arrival queue in line with pages another algorithm loaded"""
        resident = set(frames)
        self.queue = deque(p for p in self.queue if p in resident)
        queued = set(self.queue)
        self.queue.extend(p for p in frames if p not in queued)


class LRUPageReplacement(PageReplacementAlgorithm):
    """Least Recently Used page replacement"""

    name = "LRU"
    description = ("Least Recently Used - Replaces the page that hasn't been "
                   "used for the longest time")

    def __init__(self):
        self.access_order = OrderedDict()  # least recent first

    def step(self, page: int, frames: FrameSet) -> bool:
        if page in frames:
            # Update access order (move to end)
            self.access_order.pop(page, None)
            self.access_order[page] = True
            return False

        # Page fault occurred
        if frames.is_full():
            lru_page, _ = self.access_order.popitem(last=False)
            frames.remove(lru_page)
            logger.debug("%s evicted page %d for page %d", self.name, lru_page, page)

        frames.add(page)
        self.access_order[page] = True
        return True

    def adopt(self, frames: FrameSet):
        """Bring the recency order in line with pages another algorithm loaded"""
        for stale in [p for p in self.access_order if p not in frames]:
            del self.access_order[stale]
        for p in frames:
            if p not in self.access_order:
                self.access_order[p] = True


class MLPageReplacement(LRUPageReplacement):
    """
    Historical name for plain LRU. Nothing is learned here: the behavior
    is exactly LRUPageReplacement's
    """

    name = "ML"
    description = "ML-Based - Historical name for LRU; identical behavior"


class ClockPageReplacement(PageReplacementAlgorithm):
    """Clock (second chance) page replacement using one reference bit per frame"""

    name = "Clock"
    description = "Clock/Second Chance - Uses reference bits in a circular buffer approach"

    def __init__(self):
        self.pointer = 0
        self.ref_bits: List[int] = []

    def step(self, page: int, frames: FrameSet) -> bool:
        slot = frames.index(page)
        if slot is not None:
            self.ref_bits[slot] = 1
            return False

        # Page fault occurred
        if not frames.is_full():
            frames.add(page)
            self.ref_bits.append(0)
            return True

        # Pages with the bit set get their second chance on the way past
        while self.ref_bits[self.pointer] == 1:
            self.ref_bits[self.pointer] = 0
            self.pointer = (self.pointer + 1) % frames.capacity

        evicted_page = frames.replace_at(self.pointer, page)
        self.ref_bits[self.pointer] = 0
        logger.debug("Clock evicted page %d from slot %d", evicted_page, self.pointer)
        self.pointer = (self.pointer + 1) % frames.capacity
        return True

    def step_extras(self) -> Dict:
        return {"pointer": self.pointer, "ref_bits": tuple(self.ref_bits)}


class LFUPageReplacement(PageReplacementAlgorithm):
    """
    Least Frequently Used page replacement.
    Ties on the lowest frequency go to the page that became resident first
    """

    name = "LFU"
    description = "Least Frequently Used - Replaces the page with the lowest access frequency"

    def __init__(self):
        self.frequencies: Dict[int, int] = {}  # resident page -> access count
        self.access_order: List[int] = []  # resident pages by load time

    def step(self, page: int, frames: FrameSet) -> bool:
        if page in frames:
            self.frequencies[page] += 1
            return False

        # Page fault occurred
        if not frames.is_full():
            frames.add(page)
        else:
            victim = self.find_victim(frames)
            frames.replace_at(frames.index(victim), page)
            del self.frequencies[victim]
            self.access_order.remove(victim)
            logger.debug("LFU evicted page %d for page %d", victim, page)

        self.frequencies[page] = 1
        self.access_order.append(page)
        return True

    def find_victim(self, frames: FrameSet) -> int:
        min_freq = min(self.frequencies[p] for p in frames)
        for p in self.access_order:
            if self.frequencies[p] == min_freq:
                return p
        raise PolicyInvariantError("LFU found no eviction candidate")

    def summary(self) -> Dict:
        return {"frequencies": [(p, self.frequencies[p]) for p in self.access_order]}


class AdaptivePageReplacement(PageReplacementAlgorithm):
    """
    Switches between FIFO and LRU based on recent fault patterns.

    Starts on FIFO. Once the last ADAPTIVE_WINDOW accesses hold at least
    ADAPTIVE_FAULT_THRESHOLD faults it moves to LRU, and it returns to FIFO
    when the count drops below the threshold. A switch applies from the
    next access on
    """

    name = "Adaptive"
    description = "Adaptive Algorithm - Dynamically adjusts between different strategies"

    def __init__(self):
        self.fifo = FIFOPageReplacement()
        self.lru = LRUPageReplacement()
        self.use_lru = False
        self.recent_faults = deque(maxlen=ADAPTIVE_WINDOW)
        self.active = self.fifo.name

    def step(self, page: int, frames: FrameSet) -> bool:
        algorithm = self.lru if self.use_lru else self.fifo
        self.active = algorithm.name
        page_fault = algorithm.step(page, frames)

        self.recent_faults.append(page_fault)
        if len(self.recent_faults) == ADAPTIVE_WINDOW:
            fault_count = sum(self.recent_faults)
            if not self.use_lru and fault_count >= ADAPTIVE_FAULT_THRESHOLD:
                self._switch(self.lru, frames)
            elif self.use_lru and fault_count < ADAPTIVE_FAULT_THRESHOLD:
                self._switch(self.fifo, frames)

        return page_fault

    def _switch(self, algorithm, frames: FrameSet):
        # The other algorithm moved pages in and out since this one last ran
        algorithm.adopt(frames)
        self.use_lru = algorithm is self.lru
        logger.debug("Adaptive switched to %s (faults in window: %d)",
                     algorithm.name, sum(self.recent_faults))

    def step_extras(self) -> Dict:
        return {"algorithm": self.active}


class ARCPageReplacement(PageReplacementAlgorithm):
    """
    Adaptive Replacement Cache.

    T1 holds pages seen once recently, T2 pages seen at least twice. B1 and
    B2 remember pages evicted from T1 and T2 without keeping them resident;
    hits on those ghost lists move the target size p of T1 up or down.
    All four lists are ordered oldest first
    """

    name = "ARC"
    description = "Adaptive Replacement Cache - IBM's algorithm balancing recency and frequency"

    def __init__(self):
        self.t1 = OrderedDict()
        self.t2 = OrderedDict()
        self.b1 = OrderedDict()
        self.b2 = OrderedDict()
        self.p = 0
        self.c = 0

    def step(self, page: int, frames: FrameSet) -> bool:
        if not self.c:
            self.c = frames.capacity

        page_fault = False
        if page in self.t1:
            # Second hit promotes to the frequent list
            del self.t1[page]
            self.t2[page] = True
        elif page in self.t2:
            self.t2.move_to_end(page)
        else:
            page_fault = True
            if page in self.b1:
                self.p = min(self.c, self.p + max(1, len(self.b2) // len(self.b1)))
                logger.debug("ARC ghost hit on page %d in B1, p=%d", page, self.p)
                self._replace(prefer_t1=True)
                self.b1.pop(page, None)
                self.t2[page] = True
            elif page in self.b2:
                self.p = max(0, self.p - max(1, len(self.b1) // len(self.b2)))
                logger.debug("ARC ghost hit on page %d in B2, p=%d", page, self.p)
                self._replace(prefer_t1=False)
                self.b2.pop(page, None)
                self.t2[page] = True
            else:
                self._make_room_for_new_page()
                self.t1[page] = True

        self._check()
        frames.load(list(self.t1) + list(self.t2))
        return page_fault

    def _make_room_for_new_page(self):
        l1 = len(self.t1) + len(self.b1)
        if l1 == self.c:
            if len(self.t1) < self.c:
                self.b1.popitem(last=False)
                self._replace(prefer_t1=False)
            else:
                # T1 fills the cache on its own; drop its oldest page without a ghost
                self.t1.popitem(last=False)
        elif l1 < self.c:
            total = l1 + len(self.t2) + len(self.b2)
            if total >= self.c:
                if total == 2 * self.c:
                    self.b2.popitem(last=False)
                self._replace(prefer_t1=False)

    def _replace(self, prefer_t1: bool):
        if self.t1 and (len(self.t1) > self.p or (prefer_t1 and len(self.t1) == self.p)):
            victim, _ = self.t1.popitem(last=False)
            self.b1[victim] = True
        elif self.t2:
            victim, _ = self.t2.popitem(last=False)
            self.b2[victim] = True

        while len(self.b1) > self.c:
            self.b1.popitem(last=False)
        while len(self.b2) > self.c:
            self.b2.popitem(last=False)

    def _check(self):
        if len(self.t1) + len(self.t2) > self.c:
            raise PolicyInvariantError(
                f"ARC holds {len(self.t1) + len(self.t2)} resident pages in {self.c} frames")
        if not 0 <= self.p <= self.c:
            raise PolicyInvariantError(f"ARC target p={self.p} outside [0, {self.c}]")

    def step_extras(self) -> Dict:
        return {
            "p": self.p,
            "t1_size": len(self.t1),
            "t2_size": len(self.t2),
            "b1_size": len(self.b1),
            "b2_size": len(self.b2),
        }

    def summary(self) -> Dict:
        return {
            "adaptive_parameter": self.p,
            "t1_size": len(self.t1),
            "t2_size": len(self.t2),
            "b1_size": len(self.b1),
            "b2_size": len(self.b2),
        }


class LIRSPageReplacement(PageReplacementAlgorithm):
    """
    Low Inter-reference Recency Set replacement.

    Most frames (LIR_RATIO) hold LIR pages, tracked on a recency stack whose
    bottom is always an LIR page. The remaining frames hold HIR pages in a
    FIFO queue
    """

    name = "LIRS"
    description = ("LIRS - Low Inter-reference Recency Set, "
                   "an advanced algorithm using inter-reference recency")

    def __init__(self):
        self.stack = OrderedDict()  # bottom (oldest) first
        self.hir_queue = OrderedDict()  # resident HIR pages, oldest first
        self.status: Dict[int, str] = {}
        self.lir_pages = OrderedDict()  # LIR pages in the order they became LIR
        self.lir_size = 0
        self.hir_size = 0
        self.total_size = 0
        self.timestamp = 0

    def _configure(self, capacity: int):
        self.total_size = capacity
        self.lir_size = max(1, math.floor(capacity * LIR_RATIO))
        self.hir_size = capacity - self.lir_size

    def step(self, page: int, frames: FrameSet) -> bool:
        if not self.total_size:
            self._configure(frames.capacity)

        self.timestamp += 1
        page_fault = False
        status = self.status.get(page)

        if status == LIR:
            self._push(page)
            self._prune_stack()
        elif status == HIR_RESIDENT:
            if page in self.stack:
                self._promote(page)
            else:
                self.hir_queue.move_to_end(page)
        else:
            # New page or HIR non-resident
            page_fault = True
            self._handle_page_fault(page)

        self._check()
        frames.load(self.resident_pages())
        return page_fault

    def _handle_page_fault(self, page: int):
        # With no HIR frames (a single frame) every admitted page has to be LIR
        if page in self.stack or self.lir_count() < self.lir_size or self.hir_size == 0:
            if self.lir_count() >= self.lir_size:
                self._evict_lir()
            self._make_lir(page)
        else:
            if len(self.hir_queue) >= self.hir_size:
                victim, _ = self.hir_queue.popitem(last=False)
                self.status[victim] = HIR_NON_RESIDENT
                logger.debug("LIRS evicted HIR page %d", victim)
            self.status[page] = HIR_RESIDENT
            self.hir_queue[page] = True

    def _promote(self, page: int):
        del self.hir_queue[page]
        if self.lir_count() >= self.lir_size:
            self._evict_lir()
        self._make_lir(page)

    def _make_lir(self, page: int):
        self.status[page] = LIR
        self.lir_pages[page] = True
        self._push(page)
        self._prune_stack()

    def _push(self, page: int):
        self.stack.pop(page, None)
        self.stack[page] = True

    def _evict_lir(self):
        for p in self.stack:
            if self.status[p] == LIR:
                self.status[p] = HIR_NON_RESIDENT
                del self.lir_pages[p]
                del self.stack[p]
                logger.debug("LIRS evicted LIR page %d", p)
                return

    def _prune_stack(self):
        while self.stack:
            bottom = next(iter(self.stack))
            if self.status.get(bottom) == LIR:
                break
            del self.stack[bottom]

    def _check(self):
        if len(self.hir_queue) > self.hir_size:
            raise PolicyInvariantError(
                f"LIRS holds {len(self.hir_queue)} HIR pages, limit {self.hir_size}")
        if self.lir_count() > self.lir_size:
            raise PolicyInvariantError(
                f"LIRS holds {self.lir_count()} LIR pages, limit {self.lir_size}")

    def lir_count(self) -> int:
        return len(self.lir_pages)

    def resident_pages(self) -> List[int]:
        return list(self.lir_pages) + list(self.hir_queue)

    def step_extras(self) -> Dict:
        return {
            "lir_count": self.lir_count(),
            "hir_count": len(self.hir_queue),
            "stack_size": len(self.stack),
        }

    def summary(self) -> Dict:
        return self.step_extras()


# Map algorithm names to their classes
ALGORITHMS = OrderedDict([
    ("FIFO", FIFOPageReplacement),
    ("LRU", LRUPageReplacement),
    ("Clock", ClockPageReplacement),
    ("Adaptive", AdaptivePageReplacement),
    ("LFU", LFUPageReplacement),
    ("ARC", ARCPageReplacement),
    ("LIRS", LIRSPageReplacement),
])

# Accepted for single runs, never compared as a separate algorithm
ALIASES = {
    "ML": MLPageReplacement,
}

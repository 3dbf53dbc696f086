from swarm_loopguard.loop_detection.config import LoopDetectionConfig
from swarm_loopguard.loop_detection.context import DetectionContext
from swarm_loopguard.loop_detection.event import DetectorKind
from swarm_loopguard.loop_detection.hasher import ContentHasher
from swarm_loopguard.loop_detection.history import History
from swarm_loopguard.loop_detection.oscillation import OscillationDetector, find_period

from tests.conftest import make_turn


class TestFindPeriod:
    """Periodicity search over fingerprint sequences."""

    def test_two_cycle(self) -> None:
        assert find_period(list("ABABAB"), 1, 4, 3) == (2, 3)

    def test_not_enough_items_for_period(self) -> None:
        assert find_period(list("ABABA"), 1, 4, 3) is None

    def test_no_repeats_never_fires(self) -> None:
        sequence = [f"s{i}" for i in range(40)]
        assert find_period(sequence, 1, 4, 3) is None

    def test_smallest_period_wins(self) -> None:
        # ABAB ABAB matches both p=2 and p=4
        assert find_period(list("ABABABAB"), 1, 4, 2) == (2, 4)

    def test_constant_sequence_is_period_one(self) -> None:
        assert find_period(list("AAAAAA"), 1, 4, 3) == (1, 6)
        assert find_period(list("AAAAAA"), 2, 4, 3) is None

    def test_three_cycle_with_prefix(self) -> None:
        assert find_period(list("XYZABCABCABC"), 1, 4, 3) == (3, 3)

    def test_trailing_run_counts_whole_cycles(self) -> None:
        assert find_period(list("ABABABABA"), 1, 4, 3) == (2, 4)

    def test_missing_fingerprint_breaks_periodicity(self) -> None:
        assert find_period(["A", "B", None, "B", "A", "B"], 1, 4, 3) is None
        # A gap before the periodic run only shortens it
        assert find_period([None, "A", "B", "A", "B", "A", "B"], 1, 4, 3) == (2, 3)

    def test_near_miss_is_not_tolerated(self) -> None:
        assert find_period(list("ABABAC"), 1, 4, 3) is None


class TestOscillationDetector:
    def _evaluate(self, states: list[str | None], **config_values):
        detector = OscillationDetector(LoopDetectionConfig(**config_values))
        history = History(50)
        for number, state in enumerate(states[:-1], start=1):
            history = history.append(make_turn(number, f"p{number}", state=state))
        current = states[-1]
        return detector.evaluate(
            DetectionContext(
                history=history,
                sequence_number=len(states),
                prompt_hash=ContentHasher().hash("current"),
                state_fingerprint=(
                    ContentHasher().fingerprint(current) if current is not None else None
                ),
            )
        )

    def test_detects_two_cycle_by_sixth_turn(self) -> None:
        states = ["A", "B", "A", "B", "A", "B"]
        assert self._evaluate(states[:5], oscillation_min_repeats=3) is None

        verdict = self._evaluate(states, oscillation_min_repeats=3)
        assert verdict is not None
        assert verdict.kind == DetectorKind.OSCILLATION
        assert verdict.period == 2
        assert verdict.confidence == 1.0
        assert verdict.matched_turns == frozenset(range(1, 7))

    def test_distinct_states_never_fire(self) -> None:
        states = ["A", "B", "C", "D", "E", "F"]
        for end in range(1, len(states) + 1):
            assert self._evaluate(states[:end], oscillation_min_repeats=3) is None

    def test_period_beyond_max_is_ignored(self) -> None:
        states = list("ABCABCABC")
        assert self._evaluate(states, oscillation_max_period=2) is None
        assert self._evaluate(states, oscillation_max_period=3).period == 3

    def test_no_current_fingerprint(self) -> None:
        assert self._evaluate(["A", "A", "A", None]) is None

from __future__ import annotations

from pathlib import Path
import sys

sys.path.append(str(Path(__file__).resolve().parents[1]))

import pytest

from whatspdf.domain import PAYMENT_REQUIRED, PAYMENT_STEP_NAME, ProcessingStep, StepRegistry


def _done_flags(registry: StepRegistry) -> list[bool]:
    return [step.done for step in registry]


def test_default_registry_matches_pipeline_order():
    registry = StepRegistry()

    assert [step.order for step in registry] == [0, 1, 2, 3, 4]
    assert registry[PAYMENT_REQUIRED].name == PAYMENT_STEP_NAME
    assert registry[ProcessingStep.EXTRACT_ZIP].label == "Extracting ZIP contents..."
    assert _done_flags(registry) == [False] * 5


def test_mark_done_is_idempotent():
    registry = StepRegistry()

    assert registry.mark_done(1) is True
    assert registry.mark_done(1) is False
    assert _done_flags(registry) == [False, True, False, False, False]


def test_mark_done_ignores_unknown_index():
    registry = StepRegistry()

    assert registry.mark_done(9) is False
    assert registry.mark_done(-1) is False
    assert _done_flags(registry) == [False] * 5


def test_advancement_marks_lower_steps_and_leaves_active_step_open():
    registry = StepRegistry()

    active = registry.apply_advancement(2)

    assert active == 2
    assert _done_flags(registry) == [True, True, False, False, False]
    assert registry.active_index() == 2


def test_advancement_past_last_step_has_no_active_step():
    registry = StepRegistry([("a", "A"), ("b", "B"), ("c", "C")])

    assert registry.apply_advancement(7) is None
    assert _done_flags(registry) == [True, True, True]
    assert registry.active_index() is None


@pytest.mark.parametrize(
    "indices",
    [
        [0, 1, 2, 3],
        [1, 3],
        [3, 1],
        [2, 2, 4],
        [4, 0],
    ],
)
def test_every_lower_step_stays_done_after_each_index(indices):
    registry = StepRegistry()
    highest = 0

    for index in indices:
        registry.apply_advancement(index)
        highest = max(highest, index)
        assert all(registry[order].done for order in range(highest))


def test_mark_all_done_and_reset():
    registry = StepRegistry()

    registry.mark_all_done()
    assert all(_done_flags(registry))
    assert registry.is_done(PAYMENT_STEP_NAME)

    registry.reset()
    assert not any(_done_flags(registry))
    assert registry.find("missing") is None

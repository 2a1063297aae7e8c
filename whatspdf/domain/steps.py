"""Ordered pipeline steps and their completion flags."""
from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Iterator


class ProcessingStep(IntEnum):
    EXTRACT_ZIP = 0
    PARSE_MESSAGES = 1
    CONVERT_VOICE = 2
    GENERATE_PDF = 3
    PAYMENT_REQUIRED = 4


PAYMENT_REQUIRED = int(ProcessingStep.PAYMENT_REQUIRED)
PAYMENT_STEP_NAME = "Payment Required"

DEFAULT_STEPS: list[tuple[str, str]] = [
    ("Extract ZIP", "Extracting ZIP contents..."),
    ("Parse Messages", "Parsing chat messages..."),
    ("Convert Voice", "Converting voice messages..."),
    ("Generate PDF", "Generating PDF document..."),
    (PAYMENT_STEP_NAME, "Payment required..."),
]


@dataclass(slots=True)
class Step:
    name: str
    label: str
    order: int
    done: bool = False


class StepRegistry:
    """Fixed sequence of steps; order is the index and never changes."""

    def __init__(self, definitions: Iterable[tuple[str, str]] = DEFAULT_STEPS) -> None:
        self._steps: tuple[Step, ...] = tuple(
            Step(name=name, label=label, order=order) for order, (name, label) in enumerate(definitions)
        )

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[Step]:
        return iter(self._steps)

    def __getitem__(self, index: int) -> Step:
        return self._steps[index]

    @property
    def steps(self) -> tuple[Step, ...]:
        return self._steps

    def find(self, name: str) -> Step | None:
        for step in self._steps:
            if step.name == name:
                return step
        return None

    def is_done(self, name: str) -> bool:
        step = self.find(name)
        return bool(step and step.done)

    def mark_done(self, index: int) -> bool:
        """Mark one step done. Returns ``True`` only when the flag changed."""
        if index < 0 or index >= len(self._steps):
            return False
        step = self._steps[index]
        if step.done:
            return False
        step.done = True
        return True

    def apply_advancement(self, step_index: int) -> int | None:
        """Infer completion from the arrival of ``step_index``.

        Every step strictly before the index is marked done. The step at
        the index becomes the active one and keeps its flag. Returns the
        active index, or ``None`` when the index is past the last step.
        """
        for order in range(min(step_index, len(self._steps))):
            self.mark_done(order)
        if 0 <= step_index < len(self._steps):
            return step_index
        return None

    def mark_all_done(self) -> None:
        for step in self._steps:
            step.done = True

    def active_index(self) -> int | None:
        for step in self._steps:
            if not step.done:
                return step.order
        return None

    def reset(self) -> None:
        for step in self._steps:
            step.done = False

    def snapshot(self) -> list[dict[str, object]]:
        return [
            {"name": step.name, "label": step.label, "order": step.order, "done": step.done}
            for step in self._steps
        ]

"""Per-step diagnostic traces: named inputs and checkpoints recorded by each module."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class ExplainTrace:
    module_id: str
    month_index: int
    inputs: list[tuple[str, Any]]
    checkpoints: list[tuple[str, Any]]


@dataclass(slots=True)
class ExplainTracker:
    """Collects values for one module during one step; a disabled tracker records nothing."""

    enabled: bool = False
    inputs: list[tuple[str, Any]] = field(default_factory=list)
    checkpoints: list[tuple[str, Any]] = field(default_factory=list)

    def add_input(self, label: str, value: Any) -> None:
        if self.enabled:
            self.inputs.append((label, value))

    def add_checkpoint(self, label: str, value: Any) -> None:
        if self.enabled:
            self.checkpoints.append((label, value))

    def reset(self) -> None:
        self.inputs.clear()
        self.checkpoints.clear()

    def collect(self, module_id: str, month_index: int) -> ExplainTrace | None:
        """Return the step's trace (None when empty) and clear the tracker."""
        if not self.enabled or (not self.inputs and not self.checkpoints):
            self.reset()
            return None
        trace = ExplainTrace(
            module_id=module_id,
            month_index=month_index,
            inputs=list(self.inputs),
            checkpoints=list(self.checkpoints),
        )
        self.reset()
        return trace

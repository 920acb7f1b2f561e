from __future__ import annotations


class Checklist:
    """Ordered request steps reported back to the client, done or not."""

    def __init__(self, steps: tuple[str, ...] | list[str]) -> None:
        self._steps = list(steps)
        self._done: set[str] = set()

    def mark(self, step: str) -> None:
        if step not in self._steps:
            raise KeyError(f"Unknown checklist step: {step}")
        self._done.add(step)

    def is_done(self, step: str) -> bool:
        return step in self._done

    def as_list(self) -> list[dict]:
        return [{"step": step, "completed": step in self._done} for step in self._steps]


def mark(checklist: Checklist | None, step: str) -> None:
    if checklist is not None:
        checklist.mark(step)

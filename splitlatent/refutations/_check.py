from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Assumption:
    """
    A modelling assumption the measurement-error correction rests on.

    ``testable`` says whether the data can speak to it (and a refutation
    check tests it) or whether it must be argued from how the indicators
    were built.
    """

    name: str
    """Human-readable description of the assumption."""

    testable: bool
    """``True`` if a refutation check tests it; ``False`` if it rests on substantive grounds."""

    def fmt_tag(self) -> str:
        """Fixed-width bracketed testability label for summary output."""
        return "[  testable  ]" if self.testable else "[ untestable ]"


@dataclass(frozen=True)
class RefutationCheck:
    """Outcome of a single refutation check, with the statistic it was judged on."""

    name: str
    passed: bool
    detail: str
    statistic: float | None = None

    def __repr__(self) -> str:
        status = "PASS" if self.passed else "FAIL"
        return f"RefutationCheck({status!r}, {self.name!r})"


class RefutationReport:
    """
    Refutation checks of one fitted correction, in the order they were run.

    ``summary()`` lays the checks out as a table of result, name and the
    statistic each was judged on, with the detail line underneath. Subclasses
    supply ``_header_lines()``.
    """

    def __init__(self, checks: list[RefutationCheck]) -> None:
        self._checks = tuple(checks)

    def _header_lines(self) -> list[str]:
        raise NotImplementedError

    @property
    def checks(self) -> list[RefutationCheck]:
        return list(self._checks)

    @property
    def passed(self) -> bool:
        return all(c.passed for c in self._checks)

    @property
    def failed_checks(self) -> list[RefutationCheck]:
        return [c for c in self._checks if not c.passed]

    @property
    def statistics(self) -> dict[str, float | None]:
        """Check name → the statistic it was judged on."""
        return {c.name: c.statistic for c in self._checks}

    def summary(self) -> str:
        width = max([len(c.name) for c in self._checks] + [len("Check")])
        lines = ["", *self._header_lines(), "─" * 60]
        lines.append(f"  {'Result':<6}  {'Check':<{width}}  {'Statistic':>10}")
        for check in self._checks:
            status = "PASS" if check.passed else "FAIL"
            stat = "" if check.statistic is None else f"{check.statistic:>10.4f}"
            lines.append(f"  {status:<6}  {check.name:<{width}}  {stat:>10}")
            lines.append(f"          {check.detail}")
        lines.append("")
        failed = self.failed_checks
        if not failed:
            lines.append(f"  All {len(self._checks)} checks passed.")
        else:
            names = ", ".join(c.name for c in failed)
            lines.append(f"  {len(failed)} of {len(self._checks)} checks failed: {names}.")
        lines.append("")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return self.summary()

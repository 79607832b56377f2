from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Literal, Optional, Sequence

logger = logging.getLogger(__name__)

RuleKind = Literal["global", "element"]


class DocumentCapability:
    """The part of a live document the rule executor needs."""

    def select(self, matcher: str) -> Iterable[Any]:
        """Return the elements currently matching `matcher`."""
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class Rule:
    """
    One declarative rewrite.

    Element rules apply `transform(element)` to every element the matcher selects.
    Global rules call `transform(document)` and carry no matcher; `run_once` ones are
    skipped after their first successful execution until reset. A transform returns True
    when it changed something.
    """

    identifier: str
    kind: RuleKind
    transform: Callable[[Any], bool]
    matcher: Optional[str] = None
    run_once: bool = False

    @classmethod
    def element(cls, identifier: str, matcher: str, transform: Callable[[Any], bool]) -> Rule:
        return cls(identifier=identifier, kind="element", transform=transform, matcher=matcher)

    @classmethod
    def global_rule(cls, identifier: str, transform: Callable[[Any], bool], *, run_once: bool = True) -> Rule:
        return cls(identifier=identifier, kind="global", transform=transform, run_once=run_once)


@dataclass(slots=True)
class ProcessingStats:
    total_processed: int = 0
    rule_executions: dict[str, int] = field(default_factory=dict)
    global_rules_executed: dict[str, int] = field(default_factory=dict)
    last_process_seconds: float = 0.0


class RuleExecutor:
    def __init__(
        self,
        rules: Sequence[Rule],
        document: DocumentCapability,
        *,
        max_processing_seconds: float = 0.05,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self._global_rules = [r for r in rules if r.kind == "global"]
        self._element_rules = [r for r in rules if r.kind == "element"]
        self._document = document
        self._max_processing_seconds = max_processing_seconds
        self._clock = clock
        self._executed_once: set[str] = set()
        self.stats = ProcessingStats()

    def execute_global_rules(self) -> int:
        executed = 0
        for rule in self._global_rules:
            if rule.run_once and rule.identifier in self._executed_once:
                continue
            try:
                changed = rule.transform(self._document)
            except Exception:
                logger.exception("Global rule failed. rule=%s", rule.identifier)
                continue
            if not changed:
                continue
            executed += 1
            self.stats.global_rules_executed[rule.identifier] = (
                self.stats.global_rules_executed.get(rule.identifier, 0) + 1
            )
            if rule.run_once:
                self._executed_once.add(rule.identifier)
        return executed

    def process(self) -> int:
        """
        Run one pass: pending global rules, then every element rule.

        Element processing stops once the pass exceeds `max_processing_seconds`; the
        remaining elements are left for the next pass.
        """
        started = self._clock()
        changes = self.execute_global_rules()

        for rule in self._element_rules:
            assert rule.matcher is not None
            elements = list(self._document.select(rule.matcher))
            if not elements:
                continue
            logger.debug("rules.process rule=%s elements=%d", rule.identifier, len(elements))
            for element in elements:
                if self._clock() - started > self._max_processing_seconds:
                    logger.debug("rules.budget_exhausted rule=%s", rule.identifier)
                    return self._finish(started, changes)
                try:
                    changed = rule.transform(element)
                except Exception:
                    logger.exception("Element rule failed. rule=%s", rule.identifier)
                    continue
                if changed:
                    changes += 1
                    self.stats.rule_executions[rule.identifier] = self.stats.rule_executions.get(rule.identifier, 0) + 1
        return self._finish(started, changes)

    def _finish(self, started: float, changes: int) -> int:
        if changes:
            self.stats.total_processed += changes
            self.stats.last_process_seconds = self._clock() - started
        return changes

    def execute_global_rule(self, identifier: str) -> bool:
        """Run a global rule by name, ignoring `run_once`."""
        rule = next((r for r in self._global_rules if r.identifier == identifier), None)
        if rule is None:
            logger.warning("Global rule not found. rule=%s", identifier)
            return False
        return bool(rule.transform(self._document))

    def reset_global_rule(self, identifier: str) -> None:
        self._executed_once.discard(identifier)

    def reset(self) -> None:
        self._executed_once.clear()

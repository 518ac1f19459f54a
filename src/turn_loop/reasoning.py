"""Per-model reasoning configuration.

Selection is table driven: the first rule whose pattern matches the model id
wins. Add a row to REASONING_RULES to support a new model family.
"""

from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class ReasoningConfig:
    effort: str = "high"
    summary: str | None = None

    def to_wire(self) -> dict[str, str]:
        wire = {"effort": self.effort}
        if self.summary:
            wire["summary"] = self.summary
        return wire


@dataclass(frozen=True)
class ReasoningRule:
    pattern: str                      # regex, matched against the whole model id
    config: ReasoningConfig | None    # None = model takes no reasoning settings


REASONING_RULES: tuple[ReasoningRule, ...] = (
    ReasoningRule(r"o3", ReasoningConfig(effort="high", summary="auto")),
    ReasoningRule(r"o4-mini", ReasoningConfig(effort="high", summary="auto")),
    ReasoningRule(r"o\d.*", ReasoningConfig(effort="high")),
)


def reasoning_for_model(
    model: str,
    effort_override: str | None = None,
    rules: tuple[ReasoningRule, ...] = REASONING_RULES,
) -> ReasoningConfig | None:
    """Return the reasoning settings for *model*, or None for non-reasoning models."""
    for rule in rules:
        if re.fullmatch(rule.pattern, model):
            if rule.config is None:
                return None
            if effort_override:
                return ReasoningConfig(effort=effort_override, summary=rule.config.summary)
            return rule.config
    return None

"""Rule change classification."""

from dataclasses import dataclass, field

from ruleinsight.models.impact import ChangeType
from ruleinsight.models.rule import Rule


@dataclass
class RuleChanges:
    """Field-level difference between two rule versions."""

    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    modified: list[str] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not (self.added or self.removed or self.modified)


def calculate_changes(old_rule: Rule, new_rule: Rule) -> RuleChanges:
    """Compare the defined fields of two rule versions."""
    old_fields = old_rule.defined_fields()
    new_fields = new_rule.defined_fields()

    return RuleChanges(
        added=[key for key in new_fields if key not in old_fields],
        removed=[key for key in old_fields if key not in new_fields],
        modified=[
            key for key in old_fields if key in new_fields and old_fields[key] != new_fields[key]
        ],
    )


def detect_change_type(old_rule: Rule, new_rule: Rule) -> ChangeType:
    """Classify a rule edit.

    Only added fields is an addition and only removed fields a removal.
    Any other difference is a modification.
    """
    changes = calculate_changes(old_rule, new_rule)

    if changes.added and not changes.removed and not changes.modified:
        return ChangeType.ADDITION
    if changes.removed and not changes.added and not changes.modified:
        return ChangeType.REMOVAL
    if not changes.empty:
        return ChangeType.MODIFICATION
    return ChangeType.NO_CHANGE


def identify_affected_systems(old_rule: Rule, new_rule: Rule) -> list[str]:
    """Downstream systems touched by the edit."""
    systems = []
    if old_rule.escalation_action != new_rule.escalation_action:
        systems.append("escalation_system")
    if old_rule.escalation_target != new_rule.escalation_target:
        systems.append("notification_system")
    if old_rule.condition != new_rule.condition:
        systems.append("rule_engine")
    return systems

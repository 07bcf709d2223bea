"""Rule domain models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ConditionKind(str, Enum):
    """What part of an email the rule condition inspects."""

    SUBJECT_CONTAINS = "subject_contains"
    FROM_EMAIL = "from_email"
    URGENCY_LEVEL = "urgency_level"
    CATEGORY = "category"


class ConditionType(str, Enum):
    """Condition complexity class."""

    SIMPLE = "simple"
    COMPLEX = "complex"


class ActionKind(str, Enum):
    """Action taken when a rule triggers."""

    ESCALATE = "escalate"
    AUTO_REPLY = "auto_reply"
    APPROVAL_REQUIRED = "approval_required"
    NOTIFY = "notify"


class Rule(BaseModel):
    """Business rule definition (condition/action pair).

    Unknown condition or action kinds fail validation instead of silently
    falling back to a default.
    """

    rule_id: str = Field(..., description="Rule unique identifier")
    user_id: str | None = Field(default=None, description="Owning user")
    name: str = Field(default="", description="Rule name")
    condition: ConditionKind = Field(..., description="Condition kind")
    condition_value: str = Field(..., description="Value the condition compares against")
    condition_type: ConditionType = Field(
        default=ConditionType.SIMPLE,
        description="Condition complexity class",
    )
    conditions: list[str] = Field(
        default_factory=list,
        description="Additional conditions for multi-condition rules",
    )
    escalation_action: ActionKind = Field(..., description="Action to perform")
    escalation_target: str | None = Field(
        default=None,
        description="Escalation or notification target",
    )
    actions: list[str] = Field(default_factory=list, description="Additional actions")
    priority: int = Field(default=1, ge=0, le=10, description="Rule priority (higher = more important)")
    enabled: bool = Field(default=True, description="Whether rule is enabled")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def defined_fields(self) -> dict[str, Any]:
        """Fields that carry a value, used for change detection.

        ``None`` and empty collections count as absent; bookkeeping
        timestamps are ignored.
        """
        data = self.model_dump(mode="json", exclude={"updated_at"})
        return {
            key: value
            for key, value in data.items()
            if value is not None and value != [] and value != {}
        }

    def extract_conditions(self) -> list[str]:
        """All condition tokens of the rule."""
        return [self.condition.value, self.condition_value, *self.conditions]

    def extract_actions(self) -> list[str]:
        """All action tokens of the rule."""
        actions = [self.escalation_action.value]
        if self.escalation_target:
            actions.append(self.escalation_target)
        actions.extend(self.actions)
        return actions

"""
Shared result type and helpers for the pure transformation stages.
"""

from dataclasses import dataclass, field
from typing import Callable, Generic, List, Optional, TypeVar

from pydantic import ValidationError as PydanticValidationError

T = TypeVar("T")


@dataclass
class StageResult(Generic[T]):
    """
    Output of one transformation stage.

    `errors` non-empty means the record must not be persisted; `warnings`
    are advisory and travel with the final pipeline result.
    """
    record: Optional[T] = None
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors and self.record is not None


def apply_rule(
    rule: Callable,
    value,
    label: str,
    warnings: List[str],
):
    """
    Run a parsing rule; an unmatched non-empty input adds a warning.

    Returns the rule's result (None when nothing matched).
    """
    result = rule(value)
    if result is None and value not in (None, "", []):
        warnings.append(f"Could not parse {label} from: {value}")
    return result


def validation_messages(error: PydanticValidationError) -> List[str]:
    """Flatten a pydantic validation error into `field: message` strings."""
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ())) or "record"
        messages.append(f"{location}: {item.get('msg')}")
    return messages

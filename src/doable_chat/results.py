"""ToolResult model, batch aggregation and the handler error guard."""
import functools
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import BaseModel

from .errors import ToolError, UnexpectedError

logger = logging.getLogger("doable-chat.results")


class ToolResult(BaseModel):
    """Outcome of one tool call, as returned to the model."""

    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
    data: Optional[Any] = None
    created_count: Optional[int] = None
    updated_count: Optional[int] = None
    deleted_count: Optional[int] = None
    sent_count: Optional[int] = None
    failed_count: Optional[int] = None

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict without unset fields."""
        return self.model_dump(mode="json", exclude_none=True)

    @classmethod
    def ok(cls, message: str, data: Any = None, **counts: int) -> "ToolResult":
        return cls(success=True, message=message, data=data, **counts)

    @classmethod
    def fail(cls, error: str, data: Any = None) -> "ToolResult":
        return cls(success=False, error=error, data=data)


@dataclass
class ItemOk:
    label: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class ItemErr:
    label: str
    error: str


ItemOutcome = Union[ItemOk, ItemErr]


def plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


def summarize_batch(
    outcomes: list[ItemOutcome],
    verb: str,
    past: str,
    noun: str,
    count_field: str,
) -> ToolResult:
    """
    Aggregate per-item outcomes into one ToolResult.

    The batch succeeds if at least one item succeeded. Items are reported in
    input order.

    Args:
        outcomes: One ItemOk or ItemErr per input item
        verb: Base verb for the failure sentence ("create")
        past: Past tense for the success sentence ("created")
        noun: Singular entity noun ("issue")
        count_field: ToolResult field receiving the success count

    Returns:
        Aggregated ToolResult
    """
    succeeded = [o for o in outcomes if isinstance(o, ItemOk)]
    failed = [o for o in outcomes if isinstance(o, ItemErr)]

    parts = []
    if succeeded:
        labels = ", ".join(o.label for o in succeeded)
        parts.append(f"Successfully {past} {plural(len(succeeded), noun)}: {labels}")
    if failed:
        details = ", ".join(f"{o.label} ({o.error})" for o in failed)
        parts.append(f"Failed to {verb} {plural(len(failed), noun)}: {details}")
    text = ". ".join(parts)

    data = {
        "items": [o.data for o in succeeded],
        "errors": [{"item": o.label, "error": o.error} for o in failed],
    }
    counts = {count_field: len(succeeded), "failed_count": len(failed)}

    if succeeded:
        return ToolResult(success=True, message=text, data=data, **counts)
    return ToolResult(success=False, error=text or f"No {noun}s to {verb}", data=data, **counts)


async def capture(label: str, work: Awaitable[ItemOk]) -> ItemOutcome:
    """Await one batch item, turning any exception into an ItemErr."""
    try:
        return await work
    except ToolError as e:
        logger.warning(f"Batch item {label} failed: {e.message}")
        return ItemErr(label=label, error=e.message)
    except Exception as e:
        logger.error(f"Unexpected error on batch item {label}: {e}", exc_info=True)
        return ItemErr(label=label, error=UnexpectedError.from_exception(e, "Unexpected error").message)


Handler = Callable[[dict, Any], Awaitable[ToolResult]]


def tool_handler(fallback: str) -> Callable[[Handler], Handler]:
    """
    Guard a handler so it never raises.

    ToolError subclasses become their message; anything else becomes the
    exception text, or the fallback message when that is empty.
    """

    def decorator(func: Handler) -> Handler:
        @functools.wraps(func)
        async def wrapper(arguments: dict, ctx: Any) -> ToolResult:
            try:
                return await func(arguments, ctx)
            except ToolError as e:
                logger.warning(f"{func.__name__} failed: {e.message}")
                return ToolResult.fail(e.message)
            except Exception as e:
                logger.error(f"Unexpected error in {func.__name__}: {e}", exc_info=True)
                return ToolResult.fail(UnexpectedError.from_exception(e, fallback).message)

        return wrapper

    return decorator

"""Pod log line models."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class StackElement:
    class_name: str = ""
    method_name: str = ""
    line_number: int = 0

    @classmethod
    def from_dict(cls, d: dict) -> StackElement:
        return cls(
            class_name=d.get("cn", ""),
            method_name=d.get("mn", ""),
            line_number=d.get("ln", 0) or 0,
        )


@dataclass
class Throwable:
    message: str = ""
    stack_trace: list[StackElement] = field(default_factory=list)
    cause: Throwable | None = None

    @classmethod
    def from_dict(cls, d: dict | None) -> Throwable | None:
        if not isinstance(d, dict):
            return None
        return cls(
            message=d.get("message", "") or "",
            stack_trace=[StackElement.from_dict(s) for s in d.get("stackTrace", []) or [] if isinstance(s, dict)],
            cause=cls.from_dict(d.get("cause")),
        )

    def chain(self) -> list[str]:
        """Return the messages from this throwable down to its root cause."""
        messages: list[str] = []
        current: Throwable | None = self
        while current is not None:
            if current.message:
                messages.append(current.message)
            current = current.cause
        return messages


@dataclass
class LogLine:
    message: str = ""
    level: str = "DEBUG"
    timestamp: str = ""
    throwable: Throwable | None = None

    @classmethod
    def from_json(cls, d: dict, default_level: str) -> LogLine:
        return cls(
            message=str(d.get("message", "") or ""),
            level=str(d.get("level", "") or default_level).upper(),
            timestamp=str(d.get("timestamp", "") or ""),
            throwable=Throwable.from_dict(d.get("throwable")),
        )

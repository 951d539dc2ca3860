from typing import Any, Dict, List, Optional


class ExamDutyError(Exception):
    """Base error with a machine friendly ``code`` and optional context."""

    code: str = "examduty_error"

    def __init__(self, message: str, *, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} | context={self.context}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "context": self.context,
        }


class ValidationError(ExamDutyError):
    """Input rejected before any allocation work starts."""

    code = "validation_error"

    def __init__(self, issues: List[Any], message: Optional[str] = None):
        self.issues = list(issues)
        errors = [i for i in self.issues if getattr(i, "is_error", True)]
        if message is None:
            message = f"{len(errors)} blocking issue(s) in scheduling input"
            if errors:
                message += ": " + "; ".join(str(getattr(i, "message", i)) for i in errors[:5])
        super().__init__(message, context={"error_count": len(errors)})

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["issues"] = [getattr(i, "message", str(i)) for i in self.issues]
        return d


class EngineFault(ExamDutyError):
    """Unexpected failure inside a run; no partial result is returned."""

    code = "engine_fault"


class TimeFormatError(EngineFault):
    code = "time_format_error"


class UnknownAssignmentError(ExamDutyError, KeyError):
    code = "unknown_assignment"

    def __str__(self) -> str:
        return ExamDutyError.__str__(self)

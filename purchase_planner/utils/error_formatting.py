"""
User-facing error messages for planning failures.

Each planning exception maps to a message, a severity, recovery steps and
an error code. The CLI prints the display form and logs the log form, and
shows an error state instead of partial data.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Type

from purchase_planner.errors import (
    ApprovalError,
    BundleLoadError,
    MonthKeyError,
    PlanningError,
    UnknownSkuError,
)


class ErrorSeverity(Enum):
    """How bad an error is for the planner."""

    INFO = "info"
    WARNING = "warning"     # Plan still usable
    ERROR = "error"         # Operation failed, plan unchanged
    CRITICAL = "critical"   # No plan can be shown


@dataclass
class ErrorContext:
    """
    Formatted error, ready for display or logging.

    Attributes:
        message: Planner-facing description
        severity: ErrorSeverity
        technical_details: "ExceptionType: message"
        context: Operation, SKU and other details (None values are hidden)
        recovery_steps: What the planner can do about it
        error_code: Stable code for support (e.g. "PLAN_001")
    """
    message: str
    severity: ErrorSeverity
    technical_details: str
    context: Dict[str, Any] = field(default_factory=dict)
    recovery_steps: List[str] = field(default_factory=list)
    error_code: Optional[str] = None

    def _visible_context(self) -> List[Tuple[str, Any]]:
        return [(k, v) for k, v in self.context.items() if v is not None]

    def format_for_display(self, include_technical: bool = False) -> str:
        """Multi-line text for the terminal."""
        sections = [[self.message]]

        details = self._visible_context()
        if details:
            sections.append(["Details:"] + [f"  - {k}: {v}" for k, v in details])
        if self.recovery_steps:
            sections.append(
                ["Suggested actions:"] + [f"  {n}. {step}" for n, step in enumerate(self.recovery_steps, 1)]
            )
        if include_technical and self.technical_details:
            sections.append(["Technical details:", f"  {self.technical_details}"])
        if self.error_code:
            sections.append([f"Error code: {self.error_code}"])

        return "\n\n".join("\n".join(section) for section in sections)

    def format_for_log(self) -> str:
        """Single line for the log file."""
        details = ", ".join(f"{k}={v}" for k, v in self._visible_context())
        return (
            f"[{self.severity.value.upper()}] {self.message} "
            f"| Context: {details} | Technical: {self.technical_details}"
        )


# (exception type, code, severity, message template, recovery steps)
# First match wins, so subclasses come before PlanningError.
_RULES: List[Tuple[Type[BaseException], str, ErrorSeverity, str, List[str]]] = [
    (
        BundleLoadError, "PLAN_001", ErrorSeverity.CRITICAL,
        "Planning data could not be loaded",
        [
            "Check that the bundle file exists and is valid JSON",
            "Check that it contains metadata, registry and projection sections",
        ],
    ),
    (
        MonthKeyError, "PLAN_002", ErrorSeverity.ERROR,
        "Invalid month: {exc}",
        [
            "Month keys use the YYYY_MM format (e.g. 2026_03)",
            "Use a month inside the planning horizon",
        ],
    ),
    (
        UnknownSkuError, "PLAN_003", ErrorSeverity.WARNING,
        "SKU not found: {exc}",
        ["Check the SKU key against the registry"],
    ),
    (
        ApprovalError, "PLAN_004", ErrorSeverity.WARNING,
        "Approval request not created: {exc}",
        [
            "Select at least one week with order quantities",
            "Only pending requests can be approved or rejected",
        ],
    ),
    (
        PlanningError, "PLAN_999", ErrorSeverity.ERROR,
        "Planning error: {exc}",
        ["Check the input data and retry"],
    ),
    (
        OSError, "IO_001", ErrorSeverity.ERROR,
        "File could not be read or written",
        ["Check the file path and permissions", "Check free disk space"],
    ),
]


class ErrorFormatter:
    """Turns exceptions raised by planning operations into ErrorContext."""

    @staticmethod
    def format_planning_error(
        exc: Exception,
        operation: str,
        sku: Optional[str] = None,
        additional_context: Optional[Dict[str, Any]] = None
    ) -> ErrorContext:
        """
        Format an exception raised by a planning operation.

        Args:
            exc: The exception raised
            operation: Operation that failed (e.g. "summary", "set_override")
            sku: SKU involved, if any
            additional_context: Extra context entries

        Returns:
            ErrorContext; unknown exception types get code PLAN_UNKNOWN
        """
        context: Dict[str, Any] = {"Operation": operation}
        if sku:
            context["SKU"] = sku
        context.update(additional_context or {})
        technical = f"{type(exc).__name__}: {exc}"

        for exc_type, code, severity, template, steps in _RULES:
            if isinstance(exc, exc_type):
                return ErrorContext(
                    message=template.format(exc=exc),
                    severity=severity,
                    technical_details=technical,
                    context=context,
                    recovery_steps=list(steps),
                    error_code=code,
                )

        return ErrorContext(
            message=f"Unexpected error during {operation}",
            severity=ErrorSeverity.ERROR,
            technical_details=technical,
            context=context,
            recovery_steps=["Retry the operation", "If the error persists, check the log file"],
            error_code="PLAN_UNKNOWN",
        )

"""Result type for explicit error handling (Rust-style)"""
from dataclasses import dataclass, field
from typing import Generic, TypeVar, Optional, List, Any, Callable, Dict, Union

from .enums import ErrorCode

T = TypeVar('T')


@dataclass(frozen=True)
class ServiceError:
    """Structured failure carried by a failed Result."""

    code: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


@dataclass
class Result(Generic[T]):
    """
    Result wrapper implementing "error as value" pattern.

    Every collaborator operation and ``Orchestrator.run`` return a Result;
    expected conditions (not found, permission denied, LLM failure) are
    reported through ``error`` instead of being raised.

    Examples:
        # Create successful result
        result = Result.ok({"id": "msg-1"})

        # Create failed result
        result = Result.err(ErrorCode.NOT_FOUND, "Chat not found")

        # Check success
        if result.success:
            print(result.data)
        else:
            print(result.error.code, result.error.message)

        # Unwrap with default
        data = result.unwrap_or(default_value)
    """

    success: bool
    data: Optional[T] = None
    error: Optional[ServiceError] = None
    warnings: List[str] = field(default_factory=list)

    def __post_init__(self):
        """Validate invariants after initialization"""
        if self.success and self.data is None:
            raise ValueError("Successful result must have data")
        if not self.success and self.error is None:
            raise ValueError("Failed result must have error")

    @property
    def code(self) -> Optional[str]:
        """Error code of a failed result, None on success"""
        return self.error.code if self.error else None

    def add_warning(self, warning: str) -> 'Result[T]':
        """
        Add a warning to the result.

        Args:
            warning: Warning message to add

        Returns:
            Self for chaining
        """
        self.warnings.append(warning)
        return self

    def unwrap(self) -> T:
        """
        Unwrap the result, raising exception if failed.

        Returns:
            The wrapped data

        Raises:
            ValueError: If result is not successful
        """
        if not self.success:
            raise ValueError(f"Unwrap called on failed result: {self.error}")
        return self.data

    def unwrap_or(self, default: T) -> T:
        """Unwrap the result or return default value."""
        return self.data if self.success else default

    def unwrap_or_else(self, func: Callable[[], T]) -> T:
        """Unwrap or compute default via function."""
        return self.data if self.success else func()

    def map(self, func: Callable[[T], Any]) -> 'Result[Any]':
        """
        Apply function to data if successful.

        Returns new Result with transformed data or original error.
        """
        if self.success and self.data is not None:
            try:
                new_data = func(self.data)
                return Result(
                    success=True,
                    data=new_data,
                    warnings=self.warnings.copy()
                )
            except Exception as e:
                return Result(
                    success=False,
                    error=ServiceError(ErrorCode.INTERNAL_ERROR.value, f"Map failed: {str(e)}"),
                    warnings=self.warnings.copy()
                )

        return Result(
            success=False,
            error=self.error,
            warnings=self.warnings.copy()
        )

    def and_then(self, func: Callable[[T], 'Result[Any]']) -> 'Result[Any]':
        """
        Chain Result-returning functions (flatMap/bind).

        If successful, applies func to data and returns its Result.
        If failed, returns original error.
        """
        if self.success and self.data is not None:
            result = func(self.data)
            if isinstance(result, Result):
                result.warnings = self.warnings + result.warnings
            return result

        return Result(success=False, error=self.error, warnings=self.warnings.copy())

    def or_else(self, func: Callable[[ServiceError], 'Result[T]']) -> 'Result[T]':
        """
        Provide fallback if failed.

        If failed, calls func with error and returns its Result.
        If successful, returns original result.
        """
        if not self.success:
            return func(self.error)
        return self

    def is_ok(self) -> bool:
        """Check if result is successful"""
        return self.success

    def is_err(self) -> bool:
        """Check if result is failed"""
        return not self.success

    def expect(self, msg: str) -> T:
        """
        Unwrap with custom error message.

        Raises:
            ValueError: If result is not successful, with custom message
        """
        if not self.success:
            raise ValueError(f"{msg}: {self.error}")
        return self.data

    @classmethod
    def ok(cls, data: T) -> 'Result[T]':
        """Create successful result."""
        return cls(success=True, data=data)

    @classmethod
    def err(
        cls,
        code: Union[ErrorCode, str],
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> 'Result[T]':
        """
        Create failed result.

        Args:
            code: Error code (ErrorCode member or collaborator-specific string)
            message: Human-readable error message
            details: Optional structured context

        Returns:
            Failed Result containing a ServiceError
        """
        code_value = code.value if isinstance(code, ErrorCode) else code
        return cls(success=False, error=ServiceError(code_value, message, details or {}))

    @classmethod
    def from_error(cls, error: ServiceError) -> 'Result[T]':
        """Re-wrap an existing ServiceError unchanged (verbatim propagation)."""
        return cls(success=False, error=error)

    @classmethod
    def from_optional(
        cls,
        value: Optional[T],
        error_msg: str = "Value is None",
        code: Union[ErrorCode, str] = ErrorCode.NOT_FOUND,
    ) -> 'Result[T]':
        """Create Result from Optional value."""
        if value is not None:
            return cls.ok(value)
        return cls.err(code, error_msg)

    def __repr__(self) -> str:
        warnings_str = f", warnings={self.warnings}" if self.warnings else ""
        if self.success:
            return f"Result.ok({self.data!r}{warnings_str})"
        return f"Result.err({self.error.code!r}, {self.error.message!r}{warnings_str})"

    def __bool__(self) -> bool:
        """Allow using Result in boolean context (checks success)"""
        return self.success

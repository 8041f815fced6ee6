"""Domain Ports - Abstract Contracts for External Collaborators.

The model core performs no I/O. Whatever it needs from the outside world is
declared here as an abstract port and supplied by an adapter.

Architecture:
    - Pure abstract interfaces with zero infrastructure dependencies
    - Adapters (in-memory code lists, remote terminology servers) implement these ports
    - Validation receives a Result instead of catching adapter exceptions
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

from clinical_model.domain.model_support import Binding

T = TypeVar('T')


@dataclass(frozen=True)
class Result(Generic[T]):
    """Result type for communicating success or failure without exceptions.

    Attributes:
        success: True if the operation succeeded, False otherwise
        value: The successful result value (only present if success=True)
        error: Error message (only present if success=False)
        error_type: Type of error
        error_details: Additional error context (offending code, system, ...)

    Example:
        ```python
        result = terminology.validate_code(coding, binding)
        if not result.success:
            raise UnboundedCodedValue(result.error, name, binding.value_set)
        ```
    """

    success: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    error_details: Optional[dict] = None

    @classmethod
    def success_result(cls, value: T) -> 'Result[T]':
        """Create a successful result."""
        return cls(success=True, value=value)

    @classmethod
    def failure_result(
        cls,
        error: str,
        error_type: str = "UnboundedCodedValue",
        error_details: Optional[dict] = None
    ) -> 'Result[T]':
        """Create a failure result.

        Parameters:
            error: Error message
            error_type: Type of error
            error_details: Additional context (code, system, value set)
        """
        return cls(
            success=False,
            error=error,
            error_type=error_type,
            error_details=error_details or {}
        )


class TerminologyPort(ABC):
    """Port for value-set membership checks.

    Implementations decide whether a coded element (a Code, Coding,
    CodeableConcept or Quantity) is a member of the value set named by a
    binding. The model only asks the question; resolving value-set content
    is the adapter's business.
    """

    @abstractmethod
    def validate_code(self, element: Any, element_name: str, binding: Binding) -> Result[Any]:
        """Check a coded element against a value-set binding.

        Parameters:
            element: The coded element to check
            element_name: Name of the element, for error messages
            binding: Binding declared on the element

        Returns:
            Result: success with the element, or failure naming the offending code
        """
        pass

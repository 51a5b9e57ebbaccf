from dataclasses import dataclass
from typing import List


@dataclass
class DomainError(Exception):
    detail: str
    title: str = "Domain Error"
    type: str = "https://example.com/problems/domain-error"
    errors: List[dict] | None = None
    status_code: int = 400

    def __str__(self) -> str:
        return self.detail


@dataclass
class ValidationError(DomainError):
    title: str = "Validation Error"
    type: str = "https://example.com/problems/validation-error"
    status_code: int = 422

    @classmethod
    def from_messages(cls, messages: List[str], detail: str = "Configuration validation failed") -> "ValidationError":
        return cls(detail=detail, errors=[{"message": message} for message in messages])

    @property
    def violations(self) -> List[str]:
        return [error.get("message", "") for error in self.errors or []]


@dataclass
class NotFoundError(DomainError):
    title: str = "Not Found"
    type: str = "https://example.com/problems/not-found"
    status_code: int = 404


@dataclass
class ConflictError(DomainError):
    title: str = "Conflict"
    type: str = "https://example.com/problems/conflict"
    status_code: int = 409


@dataclass
class IllegalStateTransition(DomainError):
    title: str = "Illegal State Transition"
    type: str = "https://example.com/problems/illegal-state-transition"
    status_code: int = 409

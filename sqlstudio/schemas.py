from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Serialises with the camelCase keys the web client expects."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ErrorKind(str, Enum):
    """
    Closed set of failure kinds the sandbox reports. Engine error codes are
    mapped onto these in sandbox.errors.
    """

    INPUT_INVALID = "input_invalid"
    POLICY_VIOLATION = "policy_violation"
    STATEMENT_TIMEOUT = "statement_timeout"
    SCHEMA_REFERENCE = "schema_reference"
    SYNTAX_ERROR = "syntax_error"
    UNCLASSIFIED = "unclassified"
    UNAVAILABLE = "unavailable"
    # Logged only, the original failure is what callers see.
    ROLLBACK_FAILURE = "rollback_failure"


class ValidationVerdict(CamelModel):
    valid: bool
    error: Optional[str] = None
    sanitized_sql: Optional[str] = None
    kind: Optional[ErrorKind] = None

    @model_validator(mode="after")
    def _exactly_one_payload(self) -> "ValidationVerdict":
        if self.valid and (self.sanitized_sql is None or self.error is not None):
            raise ValueError("accepted verdict needs sanitized_sql and no error")
        if not self.valid and (self.error is None or self.sanitized_sql is not None):
            raise ValueError("rejected verdict needs an error and no sanitized_sql")
        return self

    @classmethod
    def accept(cls, sanitized_sql: str) -> "ValidationVerdict":
        return cls(valid=True, sanitized_sql=sanitized_sql)

    @classmethod
    def reject(cls, kind: ErrorKind, reason: str) -> "ValidationVerdict":
        return cls(valid=False, error=reason, kind=kind)


class FieldInfo(CamelModel):
    name: str
    data_type_id: Optional[int] = Field(
        default=None,
        alias="dataTypeID",
        description="Type identifier reported by the engine (PostgreSQL OID)",
    )


class ExecutionOutcome(CamelModel):
    success: bool
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    fields: List[FieldInfo] = Field(default_factory=list)
    row_count: int = 0
    error: Optional[str] = None
    kind: Optional[ErrorKind] = None

    @model_validator(mode="after")
    def _consistent(self) -> "ExecutionOutcome":
        if self.success and self.error is not None:
            raise ValueError("successful outcome cannot carry an error")
        if not self.success:
            if self.error is None:
                raise ValueError("failed outcome needs an error")
            if self.rows or self.fields or self.row_count:
                raise ValueError("failed outcome cannot carry rows")
        return self

    @classmethod
    def ok(
        cls,
        rows: List[Dict[str, Any]],
        fields: List[FieldInfo],
        row_count: Optional[int] = None,
    ) -> "ExecutionOutcome":
        return cls(
            success=True,
            rows=rows,
            fields=fields,
            row_count=len(rows) if row_count is None else row_count,
        )

    @classmethod
    def failure(cls, kind: ErrorKind, reason: str) -> "ExecutionOutcome":
        return cls(success=False, error=reason, kind=kind)

    @classmethod
    def from_verdict(cls, verdict: ValidationVerdict) -> "ExecutionOutcome":
        if verdict.valid:
            raise ValueError("only rejected verdicts convert to an outcome")
        return cls.failure(verdict.kind or ErrorKind.POLICY_VIOLATION, verdict.error)


# Assignment catalog


class Difficulty(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


class SampleSchema(CamelModel):
    table: str
    columns: List[str] = Field(default_factory=list)
    sample_rows: List[List[Any]] = Field(default_factory=list)


class AssignmentSummary(CamelModel):
    id: str
    title: str
    difficulty: Difficulty
    short_description: str = ""


class Assignment(AssignmentSummary):
    question: str
    sample_schemas: List[SampleSchema] = Field(default_factory=list)
    # Reserved for auto-grading
    expected_result: Optional[Any] = None

    def summary(self) -> AssignmentSummary:
        return AssignmentSummary(
            id=self.id,
            title=self.title,
            difficulty=self.difficulty,
            short_description=self.short_description,
        )

    def detail(self) -> "AssignmentDetail":
        return AssignmentDetail(
            id=self.id,
            title=self.title,
            difficulty=self.difficulty,
            question=self.question,
            sample_schemas=self.sample_schemas,
        )


class AssignmentDetail(CamelModel):
    """The student-facing view of an assignment. Never carries the expected result."""

    id: str
    title: str
    difficulty: Difficulty
    question: str
    sample_schemas: List[SampleSchema] = Field(default_factory=list)


# Hints


class HintLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, value: Optional[str]) -> "HintLevel":
        """Unknown or missing levels degrade to LOW."""
        try:
            return cls(value)
        except ValueError:
            return cls.LOW


class Hint(CamelModel):
    hint: Optional[str] = None
    next_steps: List[str] = Field(default_factory=list)
    explain_why: Optional[str] = None
    error: Optional[str] = None

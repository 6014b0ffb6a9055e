import uuid
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum


@dataclass(frozen=True)
class RunContext:
    """
    Per-run context.

    The processing date is always injected; nothing in the dispatcher reads
    the wall clock to decide which files to load.
    """
    processing_date: date
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @classmethod
    def yesterday_of(cls, reference: date, run_id: str | None = None) -> "RunContext":
        processing_date = reference - timedelta(days=1)
        if run_id is None:
            return cls(processing_date=processing_date)
        return cls(processing_date=processing_date, run_id=run_id)

    @property
    def year(self) -> str:
        return f"{self.processing_date.year:04d}"

    @property
    def month(self) -> str:
        return f"{self.processing_date.month:02d}"

    @property
    def day(self) -> str:
        return f"{self.processing_date.day:02d}"


class OutcomeStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class IngestOutcome:
    """Result of processing one config record."""
    system_name: str
    status: OutcomeStatus
    source_path: str | None = None
    destination_path: str | None = None
    row_count: int | None = None
    error_kind: str | None = None
    error_message: str | None = None
    attempts: int = 0

    @classmethod
    def succeeded(
        cls, system_name: str, *, source_path: str, destination_path: str, row_count: int, attempts: int
    ) -> "IngestOutcome":
        return cls(
            system_name=system_name,
            status=OutcomeStatus.SUCCEEDED,
            source_path=source_path,
            destination_path=destination_path,
            row_count=row_count,
            attempts=attempts,
        )

    @classmethod
    def failed(
        cls,
        system_name: str,
        *,
        error_kind: str,
        error_message: str,
        source_path: str | None = None,
        destination_path: str | None = None,
        attempts: int = 0,
    ) -> "IngestOutcome":
        return cls(
            system_name=system_name,
            status=OutcomeStatus.FAILED,
            source_path=source_path,
            destination_path=destination_path,
            error_kind=error_kind,
            error_message=error_message,
            attempts=attempts,
        )

    @classmethod
    def skipped(cls, system_name: str, reason: str) -> "IngestOutcome":
        return cls(system_name=system_name, status=OutcomeStatus.SKIPPED, error_message=reason)

    @property
    def is_success(self) -> bool:
        return self.status is OutcomeStatus.SUCCEEDED


@dataclass(frozen=True)
class RunReport:
    """Aggregated outcomes of one dispatcher run, in config order."""
    run_id: str
    processing_date: date
    outcomes: tuple[IngestOutcome, ...]

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.status is OutcomeStatus.SUCCEEDED)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.status is OutcomeStatus.FAILED)

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if o.status is OutcomeStatus.SKIPPED)

    @property
    def failures(self) -> list[IngestOutcome]:
        return [o for o in self.outcomes if o.status is OutcomeStatus.FAILED]

    @property
    def ok(self) -> bool:
        return all(o.is_success for o in self.outcomes)

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    def summary(self) -> str:
        lines = [
            f"Run {self.run_id} for {self.processing_date.isoformat()}: "
            f"{self.succeeded} succeeded, {self.failed} failed, {self.skipped} skipped"
        ]
        for failure in self.failures:
            lines.append(f"  {failure.system_name}: {failure.error_kind}: {failure.error_message}")
        return "\n".join(lines)

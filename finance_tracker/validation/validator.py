"""
Ledger Input Validation

DESIGN DECISION: Validation collects every issue it finds before
failing, so a form collaborator can show all problems at once instead
of one per attempt. Issues are ValidationIssue models; a non-empty set
of error-level issues is raised as a single ValidationError.

IMPORTANT: Validation NEVER silently fixes input. A negative amount is
rejected, not made positive; a duplicate category is rejected, not
renamed.
"""

import math
from typing import Any, Iterable, Optional

import pydantic

from finance_tracker.models.ledger import (
    Category,
    Transaction,
    TxType,
    ValidationIssue,
)


class ValidationError(ValueError):
    """Input rejected by a ledger rule."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        message = "; ".join(issue.message for issue in issues) or "Invalid input"
        super().__init__(message)

    @classmethod
    def single(cls, field: str, issue_type: str, message: str) -> "ValidationError":
        return cls([ValidationIssue(field=field, issue_type=issue_type, message=message)])


def raise_if_errors(issues: list[ValidationIssue]) -> None:
    errors = [issue for issue in issues if issue.severity == "error"]
    if errors:
        raise ValidationError(errors)


def parse_amount(raw: Any) -> tuple[Optional[float], list[ValidationIssue]]:
    """
    Parse a user-entered amount.

    Accepts numbers and numeric strings. Returns (amount, issues); the
    amount is None whenever an issue was reported.
    """
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None, [ValidationIssue(
            field="amount",
            issue_type="missing",
            message="Please enter an amount",
        )]

    if isinstance(raw, bool):
        return None, [ValidationIssue(
            field="amount",
            issue_type="invalid_format",
            message="Invalid amount format",
        )]

    try:
        amount = float(raw.strip() if isinstance(raw, str) else raw)
    except (TypeError, ValueError):
        return None, [ValidationIssue(
            field="amount",
            issue_type="invalid_format",
            message="Invalid amount format",
        )]

    if math.isnan(amount) or math.isinf(amount):
        return None, [ValidationIssue(
            field="amount",
            issue_type="invalid_format",
            message="Invalid amount format",
        )]

    if amount <= 0:
        return None, [ValidationIssue(
            field="amount",
            issue_type="invalid_value",
            message="Amount must be greater than zero",
        )]

    return amount, []


class LedgerValidator:
    """
    Validates transactions, categories, budgets and reminder times
    before they reach the store.
    """

    def transaction_issues(self, title: Optional[str], amount: Any) -> list[ValidationIssue]:
        """Check the two user-entered fields of a transaction."""
        issues = []

        if title is None or not title.strip():
            issues.append(ValidationIssue(
                field="title",
                issue_type="missing",
                message="Please enter a title",
            ))

        _, amount_issues = parse_amount(amount)
        issues.extend(amount_issues)
        return issues

    def build_transaction(
        self,
        *,
        title: Optional[str],
        amount: Any,
        category: str,
        type: TxType,
        date: Optional[int] = None,
        note: Optional[str] = "",
        id: Optional[str] = None,
    ) -> Transaction:
        """
        Validate raw input and build a Transaction from it.

        Passing ``id`` builds the full replacement of an existing entry.

        Raises:
            ValidationError: If any field is rejected
        """
        raise_if_errors(self.transaction_issues(title, amount))
        amount_value, _ = parse_amount(amount)

        fields: dict[str, Any] = {
            "title": title,
            "amount": amount_value,
            "category": category,
            "type": type,
            "note": note,
        }
        if date is not None:
            fields["date"] = date
        if id is not None:
            fields["id"] = id

        try:
            return Transaction(**fields)
        except pydantic.ValidationError as e:
            raise ValidationError([
                ValidationIssue(
                    field=".".join(str(part) for part in err["loc"]) or "transaction",
                    issue_type="invalid_value",
                    message=err["msg"],
                )
                for err in e.errors()
            ]) from e

    def category_issues(
        self,
        candidate: Category,
        existing: Iterable[Category],
        editing: Optional[Category] = None,
    ) -> list[ValidationIssue]:
        """
        Duplicate check for a new or edited category.

        A duplicate is a category of the same kind whose name matches
        case-insensitively. When editing, the entry being edited is not
        compared against itself.
        """
        issues = []
        for other in existing:
            if editing is not None and other.same_key(editing):
                continue
            if other.type == candidate.type and other.name.lower() == candidate.name.lower():
                issues.append(ValidationIssue(
                    field="name",
                    issue_type="duplicate",
                    message="This category already exists",
                ))
                break
        return issues

    def budget_issues(self, amount: Any) -> list[ValidationIssue]:
        value, issues = parse_amount(amount)
        if issues and issues[0].issue_type == "invalid_value":
            return [ValidationIssue(
                field="budget",
                issue_type="invalid_value",
                message="Budget must be greater than zero",
            )]
        if issues and issues[0].issue_type == "missing":
            return [ValidationIssue(
                field="budget",
                issue_type="missing",
                message="Please enter a monthly budget amount",
            )]
        return [issue.model_copy(update={"field": "budget"}) for issue in issues]

    def reminder_time_issues(self, hour: int, minute: int) -> list[ValidationIssue]:
        issues = []
        if not 0 <= hour <= 23:
            issues.append(ValidationIssue(
                field="hour",
                issue_type="out_of_range",
                message=f"Hour must be between 0 and 23 (got {hour})",
            ))
        if not 0 <= minute <= 59:
            issues.append(ValidationIssue(
                field="minute",
                issue_type="out_of_range",
                message=f"Minute must be between 0 and 59 (got {minute})",
            ))
        return issues

    def get_user_friendly_summary(self, issues: list[ValidationIssue]) -> str:
        """One line per problem, suitable for a toast or dialog."""
        if not issues:
            return "All checks passed."
        return "\n".join(f"• {issue.message}" for issue in issues)

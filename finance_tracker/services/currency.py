"""
Currency Conversion

Stateless conversion between the currencies the ledger supports, based
on a fixed table of units-per-USD rates. The table is static
configuration; it is not user-editable and is never fetched.

Rebasing multiplies every stored amount by one factor. Because factors
are ratios of the same table, rebasing composes:
rebase(rebase(X, f1), f2) == rebase(X, f1 * f2) up to float rounding.
"""

from typing import Iterable, Mapping

from finance_tracker.models.ledger import Transaction
from finance_tracker.validation.validator import ValidationError

# Units of each currency per 1 USD.
USD_RATES: Mapping[str, float] = {
    "USD": 1.0,
    "EUR": 0.85,
    "GBP": 0.75,
    "JPY": 110.0,
    "CAD": 1.25,
    "AUD": 1.35,
    "LKR": 320.0,
}

CURRENCY_PREFIXES: Mapping[str, str] = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "LKR": "Rs. ",
}


class CurrencyConverter:
    """Conversion factors and rebasing over a fixed rate table."""

    def __init__(self, rates: Mapping[str, float] = USD_RATES):
        self._rates = dict(rates)

    def available_currencies(self) -> list[str]:
        return list(self._rates)

    def is_supported(self, code: str) -> bool:
        return code in self._rates

    def _rate(self, code: str) -> float:
        try:
            return self._rates[code]
        except KeyError:
            raise ValidationError.single(
                field="currency",
                issue_type="unsupported",
                message=f"Unsupported currency: {code!r}",
            ) from None

    def conversion_factor(self, from_code: str, to_code: str) -> float:
        """
        Factor that turns an amount in ``from_code`` into ``to_code``.

        Identical codes always give exactly 1.0.

        Raises:
            ValidationError: If either code is not in the rate table
        """
        if from_code == to_code:
            self._rate(from_code)
            return 1.0
        return self._rate(to_code) / self._rate(from_code)

    def convert_amount(self, amount: float, from_code: str, to_code: str) -> float:
        return amount * self.conversion_factor(from_code, to_code)

    @staticmethod
    def rebase(transactions: Iterable[Transaction], factor: float) -> list[Transaction]:
        """Return copies of ``transactions`` with every amount multiplied by ``factor``."""
        if factor == 1.0:
            return list(transactions)
        return [tx.model_copy(update={"amount": tx.amount * factor}) for tx in transactions]

    @staticmethod
    def rebase_budget(budget: float, factor: float) -> float:
        return budget * factor

    @staticmethod
    def format_amount(amount: float, code: str) -> str:
        """Render an amount with its currency symbol, e.g. "$12.50" or "JPY 1200.00"."""
        prefix = CURRENCY_PREFIXES.get(code)
        if prefix is None:
            return f"{code} {amount:.2f}"
        return f"{prefix}{amount:.2f}"

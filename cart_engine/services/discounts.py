# cart_engine/services/discounts.py
from decimal import Decimal
from typing import Protocol

from pydantic import BaseModel


class DiscountTerms(BaseModel):
    code: str
    amount: Decimal = Decimal("0")
    percentage: Decimal = Decimal("0")


class DiscountResolver(Protocol):
    def resolve(self, code: str) -> DiscountTerms | None: ...


def normalize_code(code: str) -> str:
    return code.strip().upper()


class StaticDiscountResolver:
    """Fixed code table; codes are matched case-insensitively."""

    DEFAULT_CODES = {
        "WELCOME10": {"percentage": Decimal("10")},
        "SAVE20": {"percentage": Decimal("20")},
        "FIRSTORDER": {"percentage": Decimal("15")},
        "STUDENT10": {"percentage": Decimal("10")},
    }

    def __init__(self, codes: dict[str, dict] | None = None):
        table = self.DEFAULT_CODES if codes is None else codes
        self.codes = {normalize_code(k): v for k, v in table.items()}

    def resolve(self, code: str) -> DiscountTerms | None:
        code = normalize_code(code)
        terms = self.codes.get(code)
        if terms is None:
            return None
        return DiscountTerms(code=code, **terms)

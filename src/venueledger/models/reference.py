"""
Reference data — companies, operators and salary rules.

Small, fully loaded before any aggregation call, and effectively static for
a session.
"""

from __future__ import annotations

import math
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from venueledger.models.records import ShiftType, to_money


class Company(BaseModel):
    """A venue. ``code`` resolves special-cased venues such as the extra one."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    code: str | None = None

    @field_validator("code", mode="before")
    @classmethod
    def _code(cls, value: Any) -> str | None:
        if value is None or (isinstance(value, float) and math.isnan(value)):
            return None
        text = str(value).strip().lower()
        return text or None


class Operator(BaseModel):
    """A person working shifts."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    short_name: str | None = None
    is_active: bool = True

    @property
    def display_name(self) -> str:
        return self.short_name or self.name or "Unnamed"


class SalaryRule(BaseModel):
    """Base pay and up to two bonus tiers for a ``(company_code, shift_type)`` pair."""

    model_config = ConfigDict(frozen=True)

    company_code: str
    shift_type: ShiftType = ShiftType.DAY
    base_per_shift: Decimal = Decimal("0")
    threshold1_turnover: Decimal | None = None
    threshold1_bonus: Decimal | None = None
    threshold2_turnover: Decimal | None = None
    threshold2_bonus: Decimal | None = None
    is_active: bool = True

    @field_validator("company_code", mode="before")
    @classmethod
    def _code(cls, value: Any) -> str:
        return str(value or "").strip().lower()

    @field_validator("base_per_shift", mode="before")
    @classmethod
    def _base(cls, value: Any) -> Decimal:
        return to_money(value)

    @field_validator(
        "threshold1_turnover",
        "threshold1_bonus",
        "threshold2_turnover",
        "threshold2_bonus",
        mode="before",
    )
    @classmethod
    def _optional_money(cls, value: Any) -> Decimal | None:
        if value is None or (isinstance(value, float) and math.isnan(value)):
            return None
        return to_money(value)

    def tiers(self) -> list[tuple[Decimal | None, Decimal | None]]:
        return [
            (self.threshold1_turnover, self.threshold1_bonus),
            (self.threshold2_turnover, self.threshold2_bonus),
        ]

    def bonus_for(self, turnover: Decimal) -> Decimal:
        """Sum of every tier the turnover reaches. Tiers stack, they do not replace each other."""
        bonus = Decimal("0")
        for threshold, tier_bonus in self.tiers():
            if not threshold or threshold <= 0:
                continue  # tier disabled
            if turnover >= threshold:
                bonus += tier_bonus or Decimal("0")
        return bonus


class ReferenceData(BaseModel):
    """Lookup tables the engine resolves row references against."""

    model_config = ConfigDict(frozen=True)

    companies: tuple[Company, ...] = ()
    operators: tuple[Operator, ...] = ()
    salary_rules: tuple[SalaryRule, ...] = Field(default=())

    def company(self, company_id: str | None) -> Company | None:
        if company_id is None:
            return None
        for c in self.companies:
            if c.id == company_id:
                return c
        return None

    def operator(self, operator_id: str | None) -> Operator | None:
        if operator_id is None:
            return None
        for o in self.operators:
            if o.id == operator_id:
                return o
        return None

    def company_code(self, company_id: str | None) -> str | None:
        company = self.company(company_id)
        return company.code if company else None

    def company_name(self, company_id: str | None) -> str:
        company = self.company(company_id)
        return company.name if company else "Unknown"

    def rule_for(self, company_code: str, shift: ShiftType) -> SalaryRule | None:
        """Active rule for the pair; the last one wins when rules are duplicated."""
        found: SalaryRule | None = None
        for rule in self.salary_rules:
            if rule.is_active and rule.company_code == company_code and rule.shift_type == shift:
                found = rule
        return found

    def active_operators(self, include_inactive: bool = False) -> list[Operator]:
        return [o for o in self.operators if include_inactive or o.is_active]

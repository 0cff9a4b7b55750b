"""
Pool classification.

A unit draws from the daycare pool as soon as it declares any nursery,
maternal or pre-school enrollment; every other unit draws from the school
pool. Order placement, confirmation and manual movements all classify
through this function.
"""

from __future__ import annotations

from typing import Protocol

from merenda.app.db.models.core_types import Pool


class HasEnrollment(Protocol):
    nursery_students: int | None
    maternal_students: int | None
    preschool_students: int | None


DAYCARE_ENROLLMENT_FIELDS = ("nursery_students", "maternal_students", "preschool_students")


def classify_pool(unit: HasEnrollment) -> Pool:
    for field in DAYCARE_ENROLLMENT_FIELDS:
        if (getattr(unit, field, 0) or 0) > 0:
            return Pool.daycare
    return Pool.school

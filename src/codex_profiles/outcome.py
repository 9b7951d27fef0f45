# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import ProfilesError


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True)
class Outcome:
    """Result of a top-level command. Cancellation is not a failure."""

    kind: OutcomeKind
    error: Optional[ProfilesError] = None

    @classmethod
    def success(cls) -> "Outcome":
        return cls(OutcomeKind.SUCCESS)

    @classmethod
    def cancelled(cls) -> "Outcome":
        return cls(OutcomeKind.CANCELLED)

    @classmethod
    def failed(cls, error: ProfilesError) -> "Outcome":
        return cls(OutcomeKind.FAILED, error)

    @property
    def ok(self) -> bool:
        return self.kind is not OutcomeKind.FAILED

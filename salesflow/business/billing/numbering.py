from __future__ import annotations

import logging
import random
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import date

from salesflow.core.errors import ExhaustedIdSpaceError
from salesflow.metrics import observe_invoice_number_collision

logger = logging.getLogger("salesflow.billing")

INVOICE_PREFIX = "INV"
SUFFIX_MIN = 1000
SUFFIX_MAX = 9999

_random = random.SystemRandom()


def format_invoice_number(day: date, suffix: int) -> str:
    return f"{INVOICE_PREFIX}-{day:%Y%m%d}-{suffix:04d}"


@dataclass(slots=True)
class InvoiceNumberGenerator:
    """Mints ``INV-YYYYMMDD-NNNN`` numbers checked against a uniqueness oracle.

    One budget of ``max_attempts`` draws covers both numbers the oracle
    already knows and numbers that lose an insert race afterwards.
    """

    max_attempts: int = 50
    today: Callable[[], date] = date.today
    randint: Callable[[int, int], int] = _random.randint

    def candidates(self, exists: Callable[[str], bool]) -> Iterator[str]:
        """Yield fresh numbers until the caller stops asking.

        Resuming the iterator means the last number collided at insert.
        """
        day = self.today()
        for attempt in range(1, self.max_attempts + 1):
            candidate = format_invoice_number(day, self.randint(SUFFIX_MIN, SUFFIX_MAX))
            if not exists(candidate):
                yield candidate
            observe_invoice_number_collision()
            logger.info("invoice_number.collision", extra={"invoice_number": candidate, "attempt": attempt})
        raise ExhaustedIdSpaceError(INVOICE_PREFIX, self.max_attempts)

    def generate(self, exists: Callable[[str], bool]) -> str:
        return next(self.candidates(exists))

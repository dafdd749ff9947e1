# backend/app/domain/constants.py

"""
Single source for the enumerations and fixed figures shared by services,
schemas and routers.
"""

from decimal import Decimal
from typing import Final

# purchase order numbering: {PREFIX}-{YYYY}-{NNN}
ORDER_NUMBER_FORMAT: Final[str] = "{prefix}-{year:04d}-{seq:03d}"
ORDER_NUMBER_MAX_ATTEMPTS: Final[int] = 5

# fixed "reference month" used by overhead proration (4 weeks x 5 days),
# applied whatever the work-week setting is
REFERENCE_MONTH_WORKDAYS: Final[Decimal] = Decimal("20")

WORK_WEEK_CHOICES: Final[tuple] = (5, 6, 7)

MONEY_PLACES: Final[Decimal] = Decimal("0.01")
WHOLE: Final[Decimal] = Decimal("1")

OVERHEAD_CATEGORIES: Final[tuple] = (
    "MATERIEL", "VEHICULE", "LOCATION", "CHARGES", "ASSURANCE", "BANQUE",
    "LOGICIEL", "SERVICE", "COMMUNICATION", "CREDIT_CLASSIQUE", "CREDIT_BAIL", "AUTRE",
)

LABOR_PHASES: Final[tuple] = ("FAB", "SER", "POSE")

QUOTE_STATUSES: Final[tuple] = ("DRAFT", "VALIDATED", "DONE", "REJECTED")
# quotes counted as realized revenue
REVENUE_QUOTE_STATUSES: Final[tuple] = ("VALIDATED", "DONE")

ALLOCATION_MODES: Final[tuple] = ("percent", "amount")

"""
Prometheus metrics exposed on /metrics.
"""

from prometheus_client import Counter

GENERATIONS_TOTAL = Counter(
    "codegen_generations_total",
    "Code generation attempts by outcome",
    ["outcome"],
)

CREDITS_DEBITED_TOTAL = Counter(
    "codegen_credits_debited_total",
    "Credits debited for code generations",
)

PAYMENT_SUBMISSIONS_TOTAL = Counter(
    "codegen_payment_submissions_total",
    "Payment submissions by resulting status",
    ["status"],
)

PAYMENT_REVIEWS_TOTAL = Counter(
    "codegen_payment_reviews_total",
    "Admin payment reviews by decision",
    ["decision"],
)

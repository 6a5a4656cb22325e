"""Business metrics for Prometheus monitoring."""
from prometheus_client import Counter

# Subscription status checks, labelled by outcome reason
subscription_checks_total = Counter(
    "subscription_checks_total",
    "Total subscription status checks",
    labelnames=["reason"],
)

# Quota metrics
quota_reservations_total = Counter(
    "quota_reservations_total",
    "Total quota units reserved by teachers",
    labelnames=["kind"],  # group, learning_path, resource, activity, student
)

quota_refusals_total = Counter(
    "quota_refusals_total",
    "Total creations refused because a plan limit was reached",
    labelnames=["kind"],
)

# Expiry sweep metrics
expired_subscriptions_reverted_total = Counter(
    "expired_subscriptions_reverted_total",
    "Total teachers moved to the default free plan after expiry",
)

expiry_sweep_failures_total = Counter(
    "expiry_sweep_failures_total",
    "Total expiry sweeps aborted",
    labelnames=["reason"],  # default_plan_missing, internal_error
)

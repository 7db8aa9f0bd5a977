from __future__ import annotations

from prometheus_client import Counter

gatekeeper_decisions_total = Counter(
    "gatekeeper_decisions_total",
    "Gatekeeper accept/deny decisions",
    labelnames=("outcome", "reason"),
)

template_fetch_skips_total = Counter(
    "template_fetch_skips_total",
    "Template files skipped because their download failed",
    labelnames=("template",),
)

publish_stage_failures_total = Counter(
    "publish_stage_failures_total",
    "Repository publisher failures by stage",
    labelnames=("stage",),
)

commits_published_total = Counter(
    "commits_published_total",
    "Commits made reachable by a successful ref update",
)

deployment_triggers_total = Counter(
    "deployment_triggers_total",
    "Hosting deployment trigger attempts",
    labelnames=("outcome",),
)

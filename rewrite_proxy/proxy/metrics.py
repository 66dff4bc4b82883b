from prometheus_client import Counter

RULES_APPLIED = Counter(
    "rewrite_proxy_rules_applied_total",
    "Modification rules applied to proxied documents",
)

PASSTHROUGH = Counter(
    "rewrite_proxy_passthrough_total",
    "Responses relayed without transformation",
    ["reason"],
)

TRANSFORMED = Counter(
    "rewrite_proxy_transformed_total",
    "Responses relayed with a transformed body",
)

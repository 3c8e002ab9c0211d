import os
from typing import Any, Dict

from dotenv import load_dotenv

load_dotenv()

# ---- Store connection ----
AWS_REGION = os.getenv("AWS_REGION", "us-east-1")
# Point at DynamoDB Local / localstack when set
DYNAMO_ENDPOINT_URL = os.getenv("DYNAMO_ENDPOINT_URL", "")

# ---- Query defaults ----
DEFAULT_LIMIT = int(os.getenv("DYNAMO_QUERY_DEFAULT_LIMIT", "10"))

# Upper bound on COUNT round-trips per total-count aggregation.
# "0" disables the bound.
MAX_COUNT_PAGES = int(os.getenv("DYNAMO_QUERY_MAX_COUNT_PAGES", "1000"))

# "true" re-raises store failures, "false" resolves them to None.
REJECT_ON_FAIL = os.getenv("DYNAMO_QUERY_REJECT_ON_FAIL", "true").strip().lower() in (
    "1", "true", "yes", "on",
)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def default_adapter_options() -> Dict[str, Any]:
    """DynamoDB client kwargs built from the environment."""
    options: Dict[str, Any] = {"region_name": AWS_REGION}
    if DYNAMO_ENDPOINT_URL:
        options["endpoint_url"] = DYNAMO_ENDPOINT_URL
    return options

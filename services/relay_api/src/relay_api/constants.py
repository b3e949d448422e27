UPSTREAM_MODEL = "deepseek-r1-250120"
DEFAULT_TEMPERATURE = 0.7

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"

TIMEOUT_MESSAGE = "upstream request timed out, please try again later"

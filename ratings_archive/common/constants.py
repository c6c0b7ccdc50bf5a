"""Application constants."""

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)
API_VERSION = "2"
DEFAULT_LANGUAGE = "en-GB"
WELSH_LANGUAGE = "cy-GB"
LANGUAGES = (DEFAULT_LANGUAGE, WELSH_LANGUAGE)
FORMATS = ("json", "xml")
ACCEPT_BY_FORMAT = {
    "json": "application/json",
    "xml": "application/xml",
}
STAGES = (
    "reference",
    "establishments",
)
EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "authority",
    "document",
    "event",
    "status",
    "attempt",
    "duration_ms",
    "error_code",
    "message",
)

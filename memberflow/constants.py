DEFAULT_EXECUTION_LIST_LIMIT = 50
DEFAULT_STEP_TIMEOUT_SECONDS = 30.0
DEFAULT_HTTP_TIMEOUT_SECONDS = 10.0

# Run-context key holding the result of the last ``conditional`` step.
CONDITION_RESULT_KEY = "_condition_result"

DEFAULT_POINTS_CATEGORY = "media_contribution"
DEFAULT_POINTS_AMOUNT = 10
DEFAULT_EMAIL_TAGS = ["automation", "workflow"]

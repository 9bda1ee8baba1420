EMPLOYEE_ID_FIELD = "employee_id"
NAME_FIELD = "name"
EMAIL_FIELD = "email"
DEPARTMENT_FIELD = "department"
DIVISION_FIELD = "division"
COMPANY_FIELD = "company"
COUNTRY_FIELD = "country"
ROLE_FIELD = "role"
STATUS_FIELD = "status"
FTE_FIELD = "fte"
START_DATE_FIELD = "start_date"
END_DATE_FIELD = "end_date"
BASE_SALARY_FIELD = "base_salary"
HOURLY_RATE_FIELD = "hourly_rate"
PAY_SCALE_FIELD = "pay_scale"
COST_CENTER_FIELD = "cost_center"
REDUCTION_STATUS_FIELD = "reduction_status"
REDUCTION_PERCENTAGE_FIELD = "reduction_percentage"

# Canonical field -> value transform applied by the field mapper
CANONICAL_FIELDS = {
    EMPLOYEE_ID_FIELD: "text",
    NAME_FIELD: "text",
    EMAIL_FIELD: "text",
    DEPARTMENT_FIELD: "text",
    DIVISION_FIELD: "text",
    COMPANY_FIELD: "text",
    COUNTRY_FIELD: "text",
    ROLE_FIELD: "text",
    STATUS_FIELD: "status",
    FTE_FIELD: "percentage",
    START_DATE_FIELD: "date",
    END_DATE_FIELD: "date",
    BASE_SALARY_FIELD: "number",
    HOURLY_RATE_FIELD: "number",
    PAY_SCALE_FIELD: "text",
    COST_CENTER_FIELD: "text",
    REDUCTION_STATUS_FIELD: "reduction_status",
    REDUCTION_PERCENTAGE_FIELD: "percentage",
}

TRANSFORMS = ("text", "number", "percentage", "status", "reduction_status", "date")

DEFAULT_REQUIRED_FIELDS = (EMPLOYEE_ID_FIELD,)

STATUS_ALIASES = {
    "active": "active",
    "a": "active",
    "1": "active",
    "inactive": "inactive",
    "i": "inactive",
    "0": "inactive",
    "terminated": "terminated",
    "t": "terminated",
    "9": "terminated",
}

REDUCTION_STATUS_ALIASES = {
    "none": "none",
    "no": "none",
    "n": "none",
    "inactive": "none",
    "active": "active",
    "yes": "active",
    "y": "active",
}

SNAPSHOT_PROCESSING = "processing"
SNAPSHOT_COMPLETED = "completed"
SNAPSHOT_FAILED = "failed"
TERMINAL_STATUSES = (SNAPSHOT_COMPLETED, SNAPSHOT_FAILED)

MISSING_TOKENS = {"", "n/a", "null"}

DEFAULT_FTE = 100.0
HOURS_PER_YEAR = 2080
UNKNOWN_DEPARTMENT = "Unknown"

DEFAULT_BATCH_SIZE = 500
DEFAULT_MAX_WORKERS = 1
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_BACKOFF_SECONDS = 0.5
DEFAULT_PAGE_SIZE = 1000

# Largest magnitudes the stores can hold (NUMERIC(15,2) salary, NUMERIC(10,2) rate)
NUMERIC_LIMITS = {
    BASE_SALARY_FIELD: 10 ** 13,
    HOURLY_RATE_FIELD: 10 ** 8,
}

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"

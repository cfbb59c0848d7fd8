"""Survey platform client components (session, rate limiter, pagination)."""

from .rate_limiter import RateLimiter  # noqa: F401
from .session import create_default_session  # noqa: F401
from .submissions import (  # noqa: F401
    SubmissionsAPI,
    delta_query,
    submission_from_payload,
)

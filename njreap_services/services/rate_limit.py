import logging

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Fixed-window limiter backed by the ``check_rate_limit`` database function.

    The function resets an expired window and increments the counter in one
    upsert, so concurrent callers cannot both slip under the limit.
    """

    def __init__(self, client):
        self.supabase = client

    def check(self, identifier: str, function_name: str, max_requests: int,
              window_minutes: int = 60) -> bool:
        try:
            result = self.supabase.rpc("check_rate_limit", {
                "p_identifier": identifier,
                "p_function_name": function_name,
                "p_max_requests": max_requests,
                "p_window_minutes": window_minutes,
            }).execute()
        except Exception as e:
            # deny on error
            logger.error(f"Rate limit check failed for {function_name}: {e}")
            return False
        allowed = result.data is True
        if not allowed:
            logger.info(
                "rate_limited",
                extra={"evt": "rate_limit", "function": function_name, "identifier": identifier,
                       "decision": "reject", "status_code": 429},
            )
        return allowed

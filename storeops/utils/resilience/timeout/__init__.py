from .http import fetch_with_retry, fetch_with_timeout, is_server_error

__all__ = ["fetch_with_timeout", "fetch_with_retry", "is_server_error"]

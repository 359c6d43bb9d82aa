from .models_service import list_models
from .proxy_service import ProxyRouter, parse_request_body

__all__ = ["ProxyRouter", "list_models", "parse_request_body"]

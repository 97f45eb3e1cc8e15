from .consent_log import ConsentLog

__all__ = ["ConsentLog"]

from typing import Optional


class FlagshipError(Exception):
    def __init__(self, code: str, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.code = code
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class SchemaError(FlagshipError):
    """A feature (or the whole payload) does not match the wire schema."""

    def __init__(self, message: str, feature_key: Optional[str] = None, cause: Optional[Exception] = None):
        super().__init__("SCHEMA_ERROR", message, cause)
        self.feature_key = feature_key


class TransportError(FlagshipError):
    def __init__(self, message: str, status_code: Optional[int] = None, cause: Optional[Exception] = None):
        super().__init__("TRANSPORT_ERROR", message, cause)
        self.status_code = status_code


class EvaluationError(FlagshipError):
    """Raised inside the rule engine only; never crosses a resolve call."""

    def __init__(self, message: str):
        super().__init__("EVALUATION_ERROR", message)


class ConfigError(FlagshipError):
    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__("CONFIG_ERROR", message, cause)

from typing import Dict, Any


class ServiceError(Exception):
    def __init__(self, message: str, code: str = "ERROR", details: Dict = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)


class ValidationError(ServiceError):
    def __init__(self, message: str, field: str = None, details: Dict = None):
        super().__init__(message, "VALIDATION_ERROR", details)
        self.field = field


class NotFoundError(ServiceError):
    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            f"{resource} not found: {identifier}",
            "NOT_FOUND",
            {"resource": resource, "identifier": str(identifier)}
        )


class InvalidTransitionError(ServiceError):
    def __init__(self, current: str, requested: str):
        super().__init__(
            f"Cannot move purchase order from {current} to {requested}",
            "INVALID_TRANSITION",
            {"current_status": current, "requested_status": requested}
        )


class ConflictError(ServiceError):
    def __init__(self, message: str, details: Dict = None):
        super().__init__(message, "CONFLICT", details)


class BusinessRuleError(ServiceError):
    def __init__(self, message: str, rule: str = None):
        super().__init__(message, "BUSINESS_RULE_VIOLATION", {"rule": rule})


class InsufficientStockError(ServiceError):
    def __init__(self, item_name: str, required: int, available: int):
        super().__init__(
            f"Insufficient stock for {item_name}: required {required}, available {available}",
            "INSUFFICIENT_STOCK",
            {"item": item_name, "required": str(required), "available": str(available)}
        )

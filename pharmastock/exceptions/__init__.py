"""Custom exceptions for the PharmaStock application."""

class AppError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv

class BusinessLogicError(AppError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)

class NotFoundError(AppError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)

class InsufficientStockError(BusinessLogicError):
    """Raised when a batch cannot cover the requested packs."""
    def __init__(self, product_name, required, available, batch_code=None):
        req_fmt = f"{int(required)}" if required % 1 == 0 else f"{required:.2f}".rstrip('0').rstrip('.')
        avail_fmt = f"{int(available)}" if available % 1 == 0 else f"{available:.2f}".rstrip('0').rstrip('.')
        where = f" (batch {batch_code})" if batch_code else ""
        message = f"Insufficient stock for {product_name}{where}: requested {req_fmt}, available {avail_fmt}"
        super().__init__(message, status_code=409, payload={'batch_code': batch_code} if batch_code else None)

class InsufficientPaymentError(BusinessLogicError):
    """Raised when the amount tendered does not cover the grand total."""
    def __init__(self, grand_total, tendered):
        self.grand_total = grand_total
        self.tendered = tendered
        message = f"Payment is insufficient: total {grand_total:.2f}, tendered {tendered:.2f}"
        super().__init__(message, payload={'balance': f"{tendered - grand_total:.2f}"})

class UnauthorizedError(AppError):
    """Raised when a user lacks permission for an action."""
    def __init__(self, message="Unauthorized access"):
        super().__init__(message, 403)

class CartError(BusinessLogicError):
    """Raised when a cart action is rejected; the cart is left untouched."""
    def __init__(self, message, reason='invalid', status_code=400):
        self.reason = reason
        super().__init__(message, status_code=status_code, payload={'reason': reason})

"""Custom exceptions for the OSGB proposal desk."""

class OsgbError(Exception):
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

class BusinessLogicError(OsgbError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)

class ValidationError(BusinessLogicError):
    """Raised when a numeric input is out of its allowed range."""
    def __init__(self, field, value, message=None):
        message = message or f"Geçersiz değer: {field}={value}"
        super().__init__(message, status_code=422, payload={'field': field, 'value': str(value)})
        self.field = field
        self.value = value

class IndexOutOfRangeError(BusinessLogicError):
    """Raised when a mutation references a line item that does not exist."""
    def __init__(self, index, size):
        message = f"Kalem bulunamadı: sıra {index} (toplam {size} kalem)"
        super().__init__(message, status_code=404, payload={'index': index})
        self.index = index

class NotFoundError(OsgbError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)

"""Custom exceptions for the ZoneMap platform"""

class ZoneMapException(Exception):
    """Base exception for ZoneMap"""
    pass

class InvalidPolygonError(ZoneMapException):
    """Raised when a drawn or edited polygon is degenerate or self-intersecting"""
    pass

class EditorStateError(ZoneMapException):
    """Raised when a polygon editor operation is not allowed in the current state"""
    pass

class GeocodingError(ZoneMapException):
    """Raised when the geocoding service fails"""
    pass

class RateLimitError(GeocodingError):
    """Raised when the geocoding service rejects us for exceeding its usage policy"""
    pass

class ValidationError(ZoneMapException):
    """Raised when input validation fails"""
    pass

class ConfigurationError(ZoneMapException):
    """Raised when configuration is invalid"""
    pass

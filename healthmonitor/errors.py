"""
Application error types
Every error carries an HTTP status and a human-readable message; the API
blueprint turns them into JSON responses.
"""


class HealthMonitorError(Exception):
    status_code = 500
    error = 'Internal error'

    def __init__(self, message, status_code=None, details=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    def to_dict(self):
        payload = {'error': self.error, 'message': self.message}
        if self.details:
            payload['details'] = self.details
        return payload


class ValidationError(HealthMonitorError):
    status_code = 400
    error = 'Validation failed'


class NotFoundError(HealthMonitorError):
    status_code = 404
    error = 'Not found'


class ExternalServiceError(HealthMonitorError):
    status_code = 502
    error = 'External service error'

from .errors import error_response, BookingCoreError
from .auth import normalize_email

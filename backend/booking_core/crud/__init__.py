from .crud_user import user
from .crud_booking import booking
from . import crud_audit
from . import crud_booking
from . import crud_do_not_serve
from . import crud_notification
from . import crud_payment
from . import crud_service
from . import crud_settings
from . import crud_vetting

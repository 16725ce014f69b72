# Models package: import all models here so Alembic can discover them.

from trainhub.models.user import User  # noqa: F401
from trainhub.models.provider import Provider  # noqa: F401
from trainhub.models.guardian import Guardian, Participant  # noqa: F401
from trainhub.models.finance import EscrowHold, PackageCredit  # noqa: F401
from trainhub.models.booking import Booking  # noqa: F401
from trainhub.models.order import Order  # noqa: F401
from trainhub.models.checkout_snapshot import CheckoutSnapshot  # noqa: F401
from trainhub.models.notification_marker import NotificationMarker  # noqa: F401
from trainhub.models.stripe_event import StripeEvent  # noqa: F401
from trainhub.models.audit import AuditEvent  # noqa: F401

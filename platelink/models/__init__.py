# PlateLink — Database Models
# Import all models here for SQLAlchemy discovery

from platelink.models.user import User                                       # noqa
from platelink.models.vehicle import Vehicle, VehicleStats                   # noqa
from platelink.models.ledger import LedgerAccount, LedgerEntry, IdempotencyKey  # noqa
from platelink.models.referral import ReferralApplication                    # noqa
from platelink.models.activity import ActivityEvent, Notification            # noqa

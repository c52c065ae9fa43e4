# Models package - import all models here so Alembic can discover them.

from memora.models.event import (  # noqa: F401
    Event,
    EventInvitation,
    EventMember,
    EventReminder,
)
from memora.models.item import Item, Contribution  # noqa: F401
from memora.models.contact import UserContact  # noqa: F401
from memora.models.profile import UserProfile, UserPaymentSettings  # noqa: F401
from memora.models.fulfillment import Fulfillment  # noqa: F401
from memora.models.stripe_event import StripeEvent  # noqa: F401

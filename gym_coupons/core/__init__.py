from gym_coupons.core.config import settings
from gym_coupons.core.database import get_db, Base

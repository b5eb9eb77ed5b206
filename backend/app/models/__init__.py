# Import models here so Alembic can discover metadata.
from app.models.account import Account  # noqa: F401
from app.models.user import User  # noqa: F401

# Catalog + orders
from app.models.product import Product  # noqa: F401
from app.models.order import Order  # noqa: F401

# MLM ledger
from app.models.commission import Commission, OrderDistribution, Withdrawal  # noqa: F401

# Shopkeeper onboarding
from app.models.invite_token import InviteToken  # noqa: F401
from app.models.shopkeeper_request import ShopkeeperRequest  # noqa: F401

"""Reset database to clean state and seed the default service prices."""
from hvac_dispatch.lib.db import drop_db, init_db, get_db_context
from hvac_dispatch.services.pricing_service import PricingService

print("Resetting database...")

drop_db()
init_db()

with get_db_context() as db:
    PricingService(db).initialize_service_pricing()

print("Database reset complete!")

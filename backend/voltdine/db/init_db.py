"""
Database initialization script.
"""
from voltdine.db.session import init_db

# Import all models so SQLAlchemy can register them
from voltdine.models import (  # noqa: F401
    Vendor, ChargingSession, FoodOrder, PaymentAdjustment, Settlement
)

if __name__ == "__main__":
    print("Initializing database...")
    init_db()
    print("Database initialized successfully!")

"""Seed rate tiers and a demo customer, driver and load."""
from __future__ import annotations

from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()

from freightpay import models
from freightpay.config import get_settings
from freightpay.db import create_all, get_sessionmaker
from freightpay.services.rate_table import seed_default_rate_tiers


def main() -> None:
    settings = get_settings()
    print(f"Using database: {settings.database_url}")

    create_all()
    session = get_sessionmaker()()

    try:
        seeded = seed_default_rate_tiers(session)
        print(f"Rate tiers inserted: {seeded}")

        customer = models.User(full_name="Thandi Nkosi", email="thandi@example.com", phone_number="0821234567")
        driver = models.User(full_name="Sipho Dlamini", email="sipho@example.com", phone_number="0837654321")
        session.add_all([customer, driver])
        session.flush()

        load = models.Load(
            title="Office furniture",
            description="Desks and chairs",
            cargo_type="Furniture",
            weight_kg=350,
            pickup_location="Sandton, Johannesburg",
            dropoff_location="Hatfield, Pretoria",
            pickup_latitude=Decimal("-26.107600"),
            pickup_longitude=Decimal("28.056700"),
            dropoff_latitude=Decimal("-25.747900"),
            dropoff_longitude=Decimal("28.229300"),
            customer_id=customer.id,
            assigned_driver_id=driver.id,
        )
        session.add(load)
        session.commit()
        print(f"Seed data inserted. customer={customer.id} driver={driver.id} load={load.id}")
    finally:
        session.close()


if __name__ == "__main__":
    main()

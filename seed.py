"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 1 admin
  - 6 sample customers
  - 6 sample drivers (spread around Nairobi CBD, positions pushed to Redis)
  - 5 sample rides (mix of REQUESTED, ACCEPTED, COMPLETED, CANCELLED)
"""

import asyncio
from datetime import datetime, timedelta, timezone

from sqlalchemy import text

from ridehail.domain.distance import haversine_km
from ridehail.domain.enums import DriverStatus, RideStatus, Role, VehicleType
from ridehail.domain.pricing import PricingEngine
from ridehail.infrastructure.database import async_session_factory, engine
from ridehail.infrastructure.location_store import LocationStore
from ridehail.infrastructure.models import RideModel, UserModel
from ridehail.infrastructure.redis_client import get_redis

# Nairobi CBD coordinates (approx)
CBD_LAT, CBD_LNG = -1.2864, 36.8172


ADMIN = {
    "first_name": "Amina",
    "last_name": "Otieno",
    "email": "admin@example.com",
    "phone_number": "+254700000001",
}

CUSTOMERS = [
    {"first_name": "Brian", "last_name": "Kamau", "email": "brian@example.com", "phone_number": "+254711000001"},
    {"first_name": "Wanjiru", "last_name": "Mwangi", "email": "wanjiru@example.com", "phone_number": "+254711000002"},
    {"first_name": "Kevin", "last_name": "Odhiambo", "email": "kevin@example.com", "phone_number": "+254711000003"},
    {"first_name": "Faith", "last_name": "Njeri", "email": "faith@example.com", "phone_number": "+254711000004"},
    {"first_name": "Daniel", "last_name": "Kiprop", "email": "daniel@example.com", "phone_number": "+254711000005"},
    {"first_name": "Grace", "last_name": "Achieng", "email": "grace@example.com", "phone_number": "+254711000006"},
]

DRIVERS = [
    {"first_name": "Peter", "last_name": "Mutua", "email": "peter@example.com", "phone_number": "+254722000001",
     "vehicle_type": VehicleType.UBER_GO, "license_plate": "KDA 101A", "lat": -1.2850, "lng": 36.8200},
    {"first_name": "Joyce", "last_name": "Wambui", "email": "joyce@example.com", "phone_number": "+254722000002",
     "vehicle_type": VehicleType.UBER_X, "license_plate": "KDB 202B", "lat": -1.2900, "lng": 36.8150},
    {"first_name": "Samuel", "last_name": "Kariuki", "email": "samuel@example.com", "phone_number": "+254722000003",
     "vehicle_type": VehicleType.UBER_XL, "license_plate": "KDC 303C", "lat": -1.2700, "lng": 36.8100},
    {"first_name": "Esther", "last_name": "Chebet", "email": "esther@example.com", "phone_number": "+254722000004",
     "vehicle_type": VehicleType.UBER_BLACK, "license_plate": "KDD 404D", "lat": -1.3000, "lng": 36.7900},
    {"first_name": "Moses", "last_name": "Omondi", "email": "moses@example.com", "phone_number": "+254722000005",
     "vehicle_type": VehicleType.UBER_MOTO, "license_plate": "KMEA 505E", "lat": -1.2950, "lng": 36.8250},
    {"first_name": "Lucy", "last_name": "Nduta", "email": "lucy@example.com", "phone_number": "+254722000006",
     "vehicle_type": VehicleType.UBER_COMFORT, "license_plate": "KDF 606F", "lat": -1.2600, "lng": 36.8000},
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM users"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        now = datetime.now(timezone.utc)
        pricing = PricingEngine()

        # ── Users ─────────────────────────────────────────────────────
        session.add(UserModel(role=Role.ADMIN, active=True, **ADMIN))

        customers = []
        for c in CUSTOMERS:
            m = UserModel(role=Role.CUSTOMER, active=True, **c)
            session.add(m)
            customers.append(m)

        drivers = []
        for d in DRIVERS:
            m = UserModel(
                first_name=d["first_name"],
                last_name=d["last_name"],
                email=d["email"],
                phone_number=d["phone_number"],
                role=Role.DRIVER,
                driver_status=DriverStatus.AVAILABLE,
                vehicle_type=d["vehicle_type"],
                license_plate=d["license_plate"],
                active=True,
            )
            session.add(m)
            drivers.append(m)
        await session.flush()
        print(f"  Created 1 admin, {len(customers)} customers, {len(drivers)} drivers")

        # ── Rides ─────────────────────────────────────────────────────
        rides_data = [
            # Waiting for a driver
            {
                "customer": customers[0],
                "pickup": (CBD_LAT, CBD_LNG, "Kenyatta Avenue"),
                "dropoff": (-1.2921, 36.7856, "Kilimani"),
                "status": RideStatus.REQUESTED,
                "driver": None,
                "age": timedelta(minutes=2),
            },
            {
                "customer": customers[1],
                "pickup": (-1.2833, 36.8219, "Nairobi Railway Station"),
                "dropoff": (-1.2630, 36.8028, "Westlands"),
                "status": RideStatus.REQUESTED,
                "driver": None,
                "age": timedelta(minutes=1),
            },
            # Driver on the way
            {
                "customer": customers[2],
                "pickup": (-1.2980, 36.7620, "Adams Arcade"),
                "dropoff": (-1.3190, 36.7070, "Karen"),
                "status": RideStatus.ACCEPTED,
                "driver": drivers[3],
                "age": timedelta(minutes=8),
            },
            # Finished trip
            {
                "customer": customers[3],
                "pickup": (-1.3192, 36.9278, "JKIA"),
                "dropoff": (CBD_LAT, CBD_LNG, "Nairobi CBD"),
                "status": RideStatus.COMPLETED,
                "driver": drivers[0],
                "age": timedelta(hours=3),
            },
            # Cancelled by the customer
            {
                "customer": customers[4],
                "pickup": (-1.2640, 36.8040, "Sarit Centre"),
                "dropoff": (-1.2210, 36.8870, "Kasarani"),
                "status": RideStatus.CANCELLED,
                "driver": None,
                "age": timedelta(hours=1),
            },
        ]

        for r in rides_data:
            p_lat, p_lng, p_addr = r["pickup"]
            d_lat, d_lng, d_addr = r["dropoff"]
            requested_at = now - r["age"]
            ride = RideModel(
                customer_id=r["customer"].id,
                pickup_lat=p_lat,
                pickup_lng=p_lng,
                pickup_address=p_addr,
                dropoff_lat=d_lat,
                dropoff_lng=d_lng,
                dropoff_address=d_addr,
                status=r["status"],
                requested_at=requested_at,
            )
            driver = r["driver"]
            if driver is not None:
                ride.driver_id = driver.id
                ride.accepted_at = requested_at + timedelta(minutes=1)
            if r["status"] == RideStatus.ACCEPTED:
                driver.driver_status = DriverStatus.BUSY
            elif r["status"] == RideStatus.COMPLETED:
                multiplier = driver.vehicle_type.price_multiplier
                distance = haversine_km(p_lat, p_lng, d_lat, d_lng)
                ride.started_at = requested_at + timedelta(minutes=5)
                ride.completed_at = requested_at + timedelta(minutes=45)
                ride.distance = round(distance, 3)
                ride.fare = round(
                    (pricing.base_fare + distance * pricing.rate_per_km) * multiplier, 2
                )
            elif r["status"] == RideStatus.CANCELLED:
                ride.cancelled_at = requested_at + timedelta(minutes=3)
                ride.cancelled_by = r["customer"].id
                ride.cancellation_reason = "Plans changed"
            session.add(ride)
        await session.flush()
        print(f"  Created {len(rides_data)} rides")

        await session.commit()

    # ── Driver positions ──────────────────────────────────────────────
    locations = LocationStore(get_redis())
    for d, m in zip(DRIVERS, drivers):
        await locations.update_location(m.id, d["lat"], d["lng"])
    print(f"  Stored {len(drivers)} driver locations")

    print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())

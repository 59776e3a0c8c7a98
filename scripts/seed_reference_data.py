"""
Seed script to populate the roles and stores that accounts reference.
Run with: python -m scripts.seed_reference_data
"""

import asyncio
from sqlalchemy import select
from retailpos.db.session import AsyncSessionLocal, init_db
from retailpos.db.models import Role, Store


ROLES = [
    {
        "name": "admin",
        "description": "Full access to every store",
        "permissions": ["*"],
    },
    {
        "name": "manager",
        "description": "Runs a single store",
        "permissions": [
            "users:read", "users:update",
            "products:read", "products:update",
            "inventory:read", "inventory:update",
            "sales:read", "promotions:update",
        ],
    },
    {
        "name": "cashier",
        "description": "Operates a till",
        "permissions": ["products:read", "sales:create", "customers:read"],
    },
]

STORES = [
    {
        "code": "MAIN",
        "name": "Main store",
        "address": "1 Market Street",
        "city": "Springfield",
        "postal_code": "00001",
        "country": "US",
        "phone": "+15550000001",
        "email": "main@retailpos.local",
        "opening_hours": ["08:00-20:00"],
        "area": 250.0,
    },
]


async def seed():
    """Seed the database with roles and stores."""
    await init_db()

    async with AsyncSessionLocal() as session:
        for role_data in ROLES:
            result = await session.execute(
                select(Role).where(Role.name == role_data["name"])
            )
            if result.scalar_one_or_none():
                print(f"Exists: role {role_data['name']}")
                continue
            session.add(Role(**role_data))
            print(f"Added: role {role_data['name']}")

        for store_data in STORES:
            result = await session.execute(
                select(Store).where(Store.code == store_data["code"])
            )
            if result.scalar_one_or_none():
                print(f"Exists: store {store_data['code']}")
                continue
            session.add(Store(**store_data))
            print(f"Added: store {store_data['code']}")

        await session.commit()

        for model in (Role, Store):
            rows = (await session.execute(select(model))).scalars().all()
            for row in rows:
                print(f"{model.__tablename__}: {getattr(row, 'name')} -> {row.id}")


if __name__ == "__main__":
    asyncio.run(seed())

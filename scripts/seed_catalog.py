"""
Script to create sample products and reviews for local development.

Creates a handful of products with approved, pending and rejected reviews,
then recomputes their rating aggregates.

Usage:
    python scripts/seed_catalog.py [--reset]
"""
import asyncio
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.core.config import settings
from app.db.database import session_scope, init_db, drop_db, close_db
from app.models import Product, Review, ReviewStatus
from app.services.components import build_components


SAMPLE_PRODUCTS = [
    {
        "name": "TWS Earbuds Pro",
        "slug": "tws-earbuds-pro",
        "price": 1499,
        "reviews": [
            (5, "Crisp sound and the case lasts for days.", ReviewStatus.APPROVED),
            (4, "Good bass, fit could be better.", ReviewStatus.APPROVED),
            (3, "Connection drops now and then.", ReviewStatus.APPROVED),
            (1, "Buy now at my shop!!! link in bio", ReviewStatus.REJECTED),
        ],
    },
    {
        "name": "65W GaN Charger",
        "slug": "65w-gan-charger",
        "price": 2199,
        "reviews": [
            (5, "Charges my laptop and phone together.", ReviewStatus.APPROVED),
            (4, "Runs a little warm under load.", ReviewStatus.PENDING),
        ],
    },
    {
        "name": "Braided USB-C Cable 2m",
        "slug": "braided-usb-c-cable-2m",
        "price": 349,
        "reviews": [],
    },
]


async def create_sample_data():
    """Create sample products and reviews."""
    print("Creating sample data...")

    components = build_components(settings)

    async with session_scope() as db:
        products = []
        review_count = 0

        for data in SAMPLE_PRODUCTS:
            product = Product(name=data["name"], slug=data["slug"], price=data["price"])
            db.add(product)
            await db.flush()
            products.append(product)

            for rating, comment, review_status in data["reviews"]:
                db.add(
                    Review(
                        product_id=product.id,
                        rating=rating,
                        comment=comment,
                        user_name="Sample Shopper",
                        status=review_status,
                    )
                )
                review_count += 1

        await db.commit()

        print(f"✓ Created {len(products)} products and {review_count} reviews")

        for product in products:
            summary = await components.aggregator.recompute(db, product.id)
            print(f"  - {product.slug}: {summary.mean} ({summary.count} approved) id={product.id}")

    await components.close()


async def main():
    """Main entry point."""
    if "--reset" in sys.argv:
        print("Dropping tables...")
        await drop_db()

    print("Initializing database...")
    await init_db()
    print("✓ Database initialized\n")

    try:
        await create_sample_data()
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())

"""
Script to recompute product rating aggregates.

Repairs aggregates left stale when a recompute triggered by a review write
failed. Recomputes one product when an id is given, otherwise all of them.

Usage:
    python scripts/recompute_ratings.py [PRODUCT_ID]
"""
import asyncio
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.core.config import settings
from app.db.database import session_scope, init_db, close_db
from app.services.components import build_components


async def recompute_ratings(product_id: str = None):
    """Recompute one or every product's rating aggregate."""
    print("=" * 60)
    print("Recomputing Product Ratings")
    print("=" * 60)

    components = build_components(settings)

    async with session_scope() as db:
        try:
            if product_id:
                summary = await components.aggregator.recompute(db, product_id)
                print(f"\n  ✓ {product_id}: {summary.mean} ({summary.count} reviews)")
            else:
                count = await components.aggregator.recompute_all(db)
                print(f"\n  ✓ Recomputed {count} products")
        finally:
            await components.close()


async def main():
    """Main entry point."""
    print("Initializing database...")
    await init_db()
    print("✓ Database initialized\n")

    try:
        await recompute_ratings(sys.argv[1] if len(sys.argv) > 1 else None)
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())

"""Database initialization script.

Creates indexes and seeds the sample product catalog.

Usage:
    python -m scripts.init_db
    python -m scripts.init_db --clear
"""

import argparse
import asyncio
import logging

from app.database.mongodb import mongodb
from app.models.product import ProductInDB
from app.utils.logger import setup_logging

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)

SAMPLE_PRODUCTS = [
    ProductInDB(
        productId="organic-honey",
        name="Organic Honey",
        description="Pure, raw organic honey sourced from local beekeepers. Rich in antioxidants and natural enzymes.",
        price=450,
        originalPrice=500,
        category="Food & Beverages",
        stock=25,
        image="https://images.unsplash.com/photo-1587049352846-4a222e784d38?w=400",
        features=["100% Pure", "Raw & Unprocessed", "Rich in Antioxidants", "Local Sourced"],
    ),
    ProductInDB(
        productId="handmade-soap-bar",
        name="Handmade Soap Bar",
        description="Natural handmade soap with essential oils. Gentle on skin and environmentally friendly.",
        price=120,
        originalPrice=150,
        category="Personal Care",
        stock=50,
        image="https://images.unsplash.com/photo-1571781926291-c477ebfd024b?w=400",
        features=["Natural Ingredients", "Essential Oils", "Cruelty Free", "Biodegradable"],
    ),
    ProductInDB(
        productId="organic-green-tea",
        name="Organic Green Tea",
        description="Premium organic green tea leaves with delicate flavor and health benefits.",
        price=350,
        category="Food & Beverages",
        stock=30,
        image="https://images.unsplash.com/photo-1556679343-c7306c1976bc?w=400",
        features=["Organic Certified", "Antioxidant Rich", "Premium Quality", "Sustainable Farming"],
    ),
    ProductInDB(
        productId="bamboo-toothbrush",
        name="Bamboo Toothbrush",
        description="Eco-friendly bamboo toothbrush with soft bristles. Biodegradable and sustainable.",
        price=80,
        originalPrice=100,
        category="Personal Care",
        stock=100,
        image="https://images.unsplash.com/photo-1607613009820-a29f7bb81c04?w=400",
        features=["Bamboo Handle", "Soft Bristles", "Biodegradable", "Plastic Free"],
    ),
    ProductInDB(
        productId="herbal-face-mask",
        name="Herbal Face Mask",
        description="Natural clay face mask with herbs for deep cleansing and rejuvenation.",
        price=280,
        category="Personal Care",
        stock=20,
        image="https://images.unsplash.com/photo-1596755389378-c31d21fd1273?w=400",
        features=["Natural Clay", "Herbal Extracts", "Deep Cleansing", "All Skin Types"],
    ),
    ProductInDB(
        productId="organic-coconut-oil",
        name="Organic Coconut Oil",
        description="Cold-pressed virgin coconut oil for cooking and skincare. Multi-purpose natural oil.",
        price=320,
        originalPrice=380,
        category="Food & Beverages",
        stock=40,
        image="https://images.unsplash.com/photo-1474979266404-7eaacbcd87c5?w=400",
        features=["Cold Pressed", "Virgin Quality", "Multi Purpose", "Organic Certified"],
    ),
]


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create indexes and seed the product catalog")
    parser.add_argument(
        "--clear",
        action="store_true",
        help="Delete existing products before seeding",
    )
    return parser.parse_args()


async def init_databases(*, clear: bool = False) -> None:
    """Initialize the database and seed sample products."""
    try:
        logger.info("Initializing database...")

        # connect() also creates the indexes
        await mongodb.connect()

        if clear:
            deleted = await mongodb.clear_products()
            logger.info("Deleted %d existing products", deleted)

        seeded = await mongodb.seed_products(SAMPLE_PRODUCTS)
        logger.info("Seeded %d products", seeded)

        logger.info("Database initialization completed successfully")

    except Exception as e:
        logger.error("Error initializing database: %s", e)
        raise

    finally:
        await mongodb.disconnect()


def main() -> None:
    """Entry point for the script."""
    args = _parse_args()
    asyncio.run(init_databases(clear=args.clear))


if __name__ == "__main__":
    main()

"""
Database table creation script for Identity Reconciliation API
This script tests the database connection and creates the contacts table
with its constraints and indexes. Run it once after provisioning the database.
"""

import asyncio
import logging
import sys

from config import settings
from database import db_manager
from errors import StorageError

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def create_tables() -> bool:
    """
    Create all database tables defined in the models
    Returns False when the database is unreachable or creation fails
    """
    try:
        logger.info("Starting database table creation...")

        if not await db_manager.test_connection():
            logger.error("Database connection failed - cannot create tables")
            return False

        await db_manager.create_tables()
        return True

    except StorageError as e:
        logger.error(f"Failed to create database tables: {e}")
        return False
    finally:
        await db_manager.dispose()


def main():
    """Main function to run the table creation"""
    logger.info("Identity Reconciliation API - Database Setup")

    success = asyncio.run(create_tables())

    if success:
        logger.info("Database setup completed successfully!")
    else:
        logger.error("Database setup failed! Check your database configuration and try again")

    return success


if __name__ == "__main__":
    sys.exit(0 if main() else 1)

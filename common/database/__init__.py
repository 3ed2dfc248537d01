"""
Database module - Async MongoDB connection through Motor.

Usage:
    from common.database import MongoDB, set_main_database, get_main_database

    # Set up singleton
    db = MongoDB()
    await db.connect(uri, database_name)
    set_main_database(db)

    # Access anywhere
    main_db = get_main_database()
    collection = main_db.get_collection("storesnapshots")
"""

from common.database.mongodb import (
    MongoDB,
    set_main_database,
    get_main_database,
)

__all__ = [
    "MongoDB",
    "set_main_database",
    "get_main_database",
]

"""
Loads the sample assignments into the catalog and the sample tables into
the sandbox database.

Run: python -m sqlstudio.seed [--catalog-only | --sandbox-only] [--verbose]

The sandbox tables are created through SANDBOX_ADMIN_DATABASE_URL (an
account allowed to run DDL); the read-only role named by --reader-role is
then granted SELECT on them.
"""

import argparse
import asyncio
import copy
import logging
import os
import re
from typing import Any, Dict, List, Sequence

from dotenv import load_dotenv
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from .config import StudioConfig
from .db.catalog import InMemoryCatalog, assignment_from_document

logger = logging.getLogger(__name__)

_ROLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_CUSTOMERS = {
    "table": "customers",
    "columns": ["id", "name", "email", "country", "join_date"],
    "sampleRows": [
        [1, "Alice Johnson", "alice@example.com", "USA", "2023-01-15"],
        [2, "Bob Smith", "bob@example.com", "Canada", "2023-02-20"],
        [3, "Charlie Brown", "charlie@example.com", "UK", "2023-03-10"],
    ],
}

_PRODUCTS = {
    "table": "products",
    "columns": ["id", "name", "price", "category", "stock_quantity"],
    "sampleRows": [
        [1, "Laptop Pro 15", 1299.99, "Electronics", 50],
        [2, "Wireless Mouse", 29.99, "Electronics", 200],
        [3, "Office Chair", 199.99, "Furniture", 75],
    ],
}

_ORDERS = {
    "table": "orders",
    "columns": ["id", "customer_id", "product_id", "quantity", "order_date", "total_amount"],
    "sampleRows": [
        [1, 1, 1, 1, "2023-11-01", 1299.99],
        [2, 1, 2, 2, "2023-11-01", 59.98],
        [3, 2, 3, 1, "2023-11-02", 199.99],
    ],
}

SAMPLE_ASSIGNMENTS: List[Dict[str, Any]] = [
    {
        "title": "Top Customers by Order Value",
        "difficulty": "Medium",
        "shortDescription": "Find the top 5 customers by total order value using JOINs and aggregation",
        "question": (
            "Write a SQL query to find the top 5 customers by total order value.\n\n"
            "Your query should:\n"
            "- Join the customers and orders tables\n"
            "- Calculate the total amount spent by each customer\n"
            "- Order the results by total spending (highest first)\n"
            "- Limit the results to the top 5 customers\n"
            "- Include customer name, email, and total spent"
        ),
        "sampleSchemas": [_CUSTOMERS, _ORDERS],
    },
    {
        "title": "Products by Category",
        "difficulty": "Easy",
        "shortDescription": "Count products in each category and calculate average price",
        "question": (
            "Write a SQL query to analyze products by category.\n\n"
            "Your query should:\n"
            "- Group products by category\n"
            "- Count the number of products in each category\n"
            "- Calculate the average price per category\n"
            "- Order results by number of products (descending)\n"
            "- Include category name, product count, and average price (rounded to 2 decimals)"
        ),
        "sampleSchemas": [_PRODUCTS],
    },
    {
        "title": "Monthly Revenue Trend",
        "difficulty": "Hard",
        "shortDescription": "Calculate total revenue for each month using date functions",
        "question": (
            "Write a SQL query to analyze monthly revenue trends.\n\n"
            "Your query should:\n"
            "- Extract the year and month from order_date\n"
            "- Calculate the total revenue for each month\n"
            "- Count the number of orders per month\n"
            "- Order results chronologically (oldest to newest)\n"
            "- Format the output as: year, month, total_revenue, order_count\n\n"
            "Hint: Use date functions like EXTRACT() or DATE_TRUNC()"
        ),
        "sampleSchemas": [_ORDERS],
    },
]

SANDBOX_DDL = [
    "DROP TABLE IF EXISTS orders",
    "DROP TABLE IF EXISTS products",
    "DROP TABLE IF EXISTS customers",
    """CREATE TABLE customers (
        id INTEGER PRIMARY KEY,
        name TEXT NOT NULL,
        email TEXT NOT NULL,
        country TEXT,
        join_date DATE
    )""",
    """CREATE TABLE products (
        id INTEGER PRIMARY KEY,
        name TEXT NOT NULL,
        price NUMERIC(10, 2) NOT NULL,
        category TEXT,
        stock_quantity INTEGER
    )""",
    """CREATE TABLE orders (
        id INTEGER PRIMARY KEY,
        customer_id INTEGER REFERENCES customers (id),
        product_id INTEGER REFERENCES products (id),
        quantity INTEGER NOT NULL,
        order_date DATE,
        total_amount NUMERIC(10, 2)
    )""",
    """INSERT INTO customers (id, name, email, country, join_date) VALUES
        (1, 'Alice Johnson', 'alice@example.com', 'USA', '2023-01-15'),
        (2, 'Bob Smith', 'bob@example.com', 'Canada', '2023-02-20'),
        (3, 'Charlie Brown', 'charlie@example.com', 'UK', '2023-03-10'),
        (4, 'Diana Prince', 'diana@example.com', 'USA', '2023-04-05'),
        (5, 'Ethan Hunt', 'ethan@example.com', 'Australia', '2023-05-12'),
        (6, 'Fiona Gallagher', 'fiona@example.com', 'Ireland', '2023-06-18')""",
    """INSERT INTO products (id, name, price, category, stock_quantity) VALUES
        (1, 'Laptop Pro 15', 1299.99, 'Electronics', 50),
        (2, 'Wireless Mouse', 29.99, 'Electronics', 200),
        (3, 'Office Chair', 199.99, 'Furniture', 75),
        (4, 'Standing Desk', 449.00, 'Furniture', 30),
        (5, 'Notebook Pack', 12.50, 'Stationery', 500)""",
    """INSERT INTO orders (id, customer_id, product_id, quantity, order_date, total_amount) VALUES
        (1, 1, 1, 1, '2023-11-01', 1299.99),
        (2, 1, 2, 2, '2023-11-01', 59.98),
        (3, 2, 3, 1, '2023-11-02', 199.99),
        (4, 3, 4, 1, '2023-11-15', 449.00),
        (5, 4, 5, 4, '2023-12-03', 50.00),
        (6, 5, 1, 1, '2023-12-20', 1299.99),
        (7, 6, 2, 1, '2024-01-08', 29.99),
        (8, 2, 5, 10, '2024-01-22', 125.00)""",
]


def seed_catalog(collection, documents: Sequence[Dict[str, Any]] = SAMPLE_ASSIGNMENTS) -> int:
    """
    Replaces every document in collection with documents. Returns the
    number inserted.
    """
    collection.delete_many({})
    # insert_many writes _id back into the dicts it is given.
    result = collection.insert_many([copy.deepcopy(doc) for doc in documents])
    return len(result.inserted_ids)


def sample_catalog() -> InMemoryCatalog:
    """The sample assignments without a database, ids sample-1, sample-2, ..."""
    return InMemoryCatalog(
        assignment_from_document({"_id": f"sample-{i}", **doc})
        for i, doc in enumerate(SAMPLE_ASSIGNMENTS, start=1)
    )


async def seed_sandbox(engine: AsyncEngine, reader_role: str = "sandbox_reader") -> None:
    """
    Recreates the sample tables in one transaction and grants the reader
    role SELECT on them.
    """
    if not _ROLE_NAME.match(reader_role):
        raise ValueError(f"Invalid role name: {reader_role!r}")

    async with engine.begin() as conn:
        for statement in SANDBOX_DDL:
            await conn.exec_driver_sql(statement)
        await conn.exec_driver_sql(
            f"GRANT SELECT ON customers, products, orders TO {reader_role}"
        )
    logger.info(f"Sandbox tables created, SELECT granted to {reader_role}")


def _seed_mongo(config: StudioConfig) -> int:
    from pymongo import MongoClient

    client = MongoClient(config.catalog.mongo_uri, serverSelectionTimeoutMS=2000)
    try:
        collection = client[config.catalog.database][config.catalog.collection]
        return seed_catalog(collection)
    finally:
        client.close()


async def main():
    parser = argparse.ArgumentParser(description="Seed the assignment catalog and sandbox tables")
    target = parser.add_mutually_exclusive_group()
    target.add_argument("--catalog-only", action="store_true", help="Only seed MongoDB")
    target.add_argument("--sandbox-only", action="store_true", help="Only seed PostgreSQL")
    parser.add_argument("--reader-role", default="sandbox_reader", help="Role granted SELECT")
    parser.add_argument("--verbose", action="store_true", help="Log progress")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)
    load_dotenv()
    config = StudioConfig.from_env(dotenv=False)

    if not args.sandbox_only:
        count = await asyncio.to_thread(_seed_mongo, config)
        print(f"Inserted {count} assignments into {config.catalog.database}.{config.catalog.collection}")

    if not args.catalog_only:
        admin_url = os.getenv("SANDBOX_ADMIN_DATABASE_URL")
        if not admin_url:
            raise SystemExit("SANDBOX_ADMIN_DATABASE_URL is required to create the sandbox tables")
        engine = create_async_engine(admin_url)
        try:
            await seed_sandbox(engine, args.reader_role)
        finally:
            await engine.dispose()
        print("Sandbox tables created")


if __name__ == "__main__":
    asyncio.run(main())

import argparse
import asyncio
import logging

from dotenv import load_dotenv

from sqlstudio import InMemoryCatalog, Studio, StudioConfig
from sqlstudio.schemas import Assignment, HintLevel, SampleSchema

# Load .env to get PG_* / SANDBOX_DATABASE_URL and OPENAI_API_KEY
load_dotenv()

ASSIGNMENT = Assignment(
    id="demo",
    title="Catalog sizes",
    difficulty="Easy",
    short_description="Count relations per kind",
    question="How many relations of each kind does pg_class contain?",
    sample_schemas=[SampleSchema(table="pg_class", columns=["relname", "relkind"])],
)

QUERIES = [
    "SELECT relkind, COUNT(*) AS n FROM pg_class GROUP BY relkind;",
    "SELECT relname FROM pg_class",
    "SELECT pg_sleep(10)",
    "DROP TABLE pg_class",
    "SELECT 1; SELECT 2",
    "SELECT * FROM no_such_table",
]


async def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--verbose", action="store_true", help="Log sandbox activity")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.INFO)

    config = StudioConfig.from_env()
    config.verbose = args.verbose

    async with Studio(config, catalog=InMemoryCatalog([ASSIGNMENT])) as studio:
        print(f"Health: {await studio.health()}")

        for sql in QUERIES:
            outcome = await studio.run_sandboxed_query(sql)
            print(f"\n> {sql}")
            if outcome.success:
                print(f"  {outcome.row_count} rows, columns {[f.name for f in outcome.fields]}")
                for row in outcome.rows[:3]:
                    print(f"  {row}")
            else:
                print(f"  [{outcome.kind.value}] {outcome.error}")

        hint = await studio.get_hint("demo", "SELECT relkind FROM pg_class", HintLevel.MEDIUM)
        print(f"\nHint: {hint.hint}")
        for step in hint.next_steps:
            print(f"  - {step}")


if __name__ == "__main__":
    asyncio.run(main())

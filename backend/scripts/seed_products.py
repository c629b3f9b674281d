import argparse
import asyncio
from pathlib import Path

from storefront.core.logging import configure_logging
from storefront.db.session import AsyncSessionLocal
from storefront.services.imports.products.service import ProductImportService


async def run_seed(*, csv_path: Path, batch_size: int, truncate: bool) -> None:
    content = csv_path.read_bytes()
    async with AsyncSessionLocal() as db:
        service = ProductImportService(db, batch_size=batch_size)
        stats = await service.import_csv(content, truncate=truncate)
    print(f"product seed completed: processed={stats.processed} skipped={stats.skipped}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Load catalog products from a CSV export.")
    parser.add_argument("csv_path", type=Path, help="Path to the catalog CSV file.")
    parser.add_argument("--batch-size", type=int, default=200, help="Rows per INSERT batch.")
    parser.add_argument("--truncate", action="store_true", help="Clear existing products first.")
    args = parser.parse_args()
    configure_logging()
    asyncio.run(
        run_seed(
            csv_path=args.csv_path,
            batch_size=max(1, int(args.batch_size)),
            truncate=bool(args.truncate),
        )
    )


if __name__ == "__main__":
    main()

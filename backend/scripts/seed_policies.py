import argparse
import asyncio
from pathlib import Path
from typing import List

from storefront.core.logging import configure_logging
from storefront.db.session import AsyncSessionLocal
from storefront.services.imports.knowledge.parser import PolicyDocument, parse_policy_markdown
from storefront.services.imports.knowledge.service import KnowledgeImportService


def load_documents(policies_dir: Path) -> List[PolicyDocument]:
    documents: List[PolicyDocument] = []
    for path in sorted(policies_dir.glob("*.md")):
        documents.append(parse_policy_markdown(path.name, path.read_text(encoding="utf-8")))
    return documents


async def run_seed(*, policies_dir: Path) -> None:
    documents = load_documents(policies_dir)
    if not documents:
        print(f"no policy markdown files found in {policies_dir}")
        return
    async with AsyncSessionLocal() as db:
        entries = await KnowledgeImportService(db).import_policies(documents)
    print(f"policy seed completed: ingested={len(entries)}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Embed policy markdown files into the knowledge base.")
    parser.add_argument("policies_dir", type=Path, help="Directory containing *.md policy files.")
    args = parser.parse_args()
    configure_logging()
    asyncio.run(run_seed(policies_dir=args.policies_dir))


if __name__ == "__main__":
    main()

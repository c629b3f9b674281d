from sqlalchemy import Column, String, Float, Text, DateTime
from datetime import datetime
import uuid

from storefront.db.base import Base


class Product(Base):
    """Catalog record written by bulk ingest and read-only at query time.

    Ingest guarantees a non-empty name, category and brand and a positive
    retail price for every persisted row.
    """

    __tablename__ = "products"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    uniq_id = Column(String, unique=True, index=True, nullable=False)  # Source catalog ID
    pid = Column(String, nullable=True)
    name = Column(String, nullable=False)
    product_url = Column(String, nullable=True)
    category = Column(String, nullable=False, index=True)  # First node of the category tree
    category_tree = Column(Text, nullable=True)
    retail_price = Column(Float, nullable=False)
    discounted_price = Column(Float, nullable=True)
    image = Column(String, nullable=True)
    images = Column(Text, nullable=True)  # JSON-encoded list of URLs
    description = Column(Text, nullable=True)
    product_rating = Column(Float, nullable=True)
    overall_rating = Column(Float, nullable=True)
    brand = Column(String, nullable=False, index=True)
    specifications = Column(Text, nullable=True)  # Raw blob, parsed at read time

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

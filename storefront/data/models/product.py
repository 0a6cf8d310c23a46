from sqlalchemy import Column, Integer, String, Numeric, CheckConstraint

from storefront.data.database import Base


class ProductModel(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    category = Column(String, nullable=True)

    price = Column(Numeric(12, 2), nullable=False)
    # kilogramy, gramy przeliczane na wejsciu
    weight = Column(Numeric(10, 3), nullable=False)
    stock = Column(Integer, nullable=False, default=0)

    __table_args__ = (CheckConstraint("stock >= 0", name="ck_product_stock_non_negative"),)

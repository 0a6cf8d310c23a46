# storefront/repos/product_repo.py
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from storefront.data.models.product import ProductModel


class ProductRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int) -> ProductModel | None:
        return self.db.get(ProductModel, product_id)

    def get_stock(self, product_id: int) -> int | None:
        return self.db.execute(
            select(ProductModel.stock).where(ProductModel.id == product_id)
        ).scalar_one_or_none()

    def decrement_stock(self, product_id: int, quantity: int) -> bool:
        """
        Warunkowy update: stock zmniejszany tylko gdy wystarcza.
        np. update products set stock = stock - 2 where id = 1 and stock >= 2
        0 rows affected -> ktos wykupil w miedzyczasie
        """
        result = self.db.execute(
            update(ProductModel)
            .where(ProductModel.id == product_id)
            .where(ProductModel.stock >= quantity)
            .values(stock=ProductModel.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

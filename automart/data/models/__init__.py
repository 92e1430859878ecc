#import all models so they are registered in Base.metadata

from automart.data.models.order import OrderModel

__all__ = ["OrderModel"]

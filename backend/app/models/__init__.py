from .user import AppUser
from .setting import AppSetting
from .job import Job, Quote, TimeEntry
from .purchase_category import PurchaseCategory
from .order_counter import OrderCounter
from .purchase_order import PurchaseOrder
from .overhead_item import OverheadItem
from .purchase_estimation import PurchaseEstimation, EstimationCategory
__all__ = [
    "AppUser", "AppSetting", "Job", "Quote", "TimeEntry", "PurchaseCategory",
    "OrderCounter", "PurchaseOrder", "OverheadItem", "PurchaseEstimation", "EstimationCategory",
]

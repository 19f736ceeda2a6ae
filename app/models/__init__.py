from app.models.restaurant import Restaurant
from app.models.user import User
from app.models.category import Category
from app.models.subcategory import Subcategory
from app.models.menu_item import MenuItem
from app.models.order import Order
from app.models.order_item import OrderItem
from app.models.reservation import Reservation
from app.models.feedback import Feedback
from app.models.restaurant_settings import RestaurantSettings
from app.models.restaurant_branding import RestaurantBranding
from app.models.restaurant_content import RestaurantContent

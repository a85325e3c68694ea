from stivans.models.profile import Profile
from stivans.models.product import Product
from stivans.models.cadaver_details import CadaverDetails
from stivans.models.order_item import OrderItem
from stivans.models.order import Order
from stivans.models.cart import Cart, CartItem
from stivans.models.order_event import OrderTimelineEvent
from stivans.models.notifications import Notification
from stivans.models.tracking_sequence import TrackingSequence
from stivans.models.payment import Payment

# add ALL models here

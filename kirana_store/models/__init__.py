from kirana_store.models.customer import Customer
from kirana_store.models.customer_address import CustomerAddress
from kirana_store.models.product_category import ProductCategory
from kirana_store.models.product import Product, ProductVariant
from kirana_store.models.cart import Cart, CartItem
from kirana_store.models.order import Order
from kirana_store.models.order_item import OrderItem
from kirana_store.models.order_status_log import OrderStatusLog
from kirana_store.models.conversation_log import ConversationLogEntry
from kirana_store.models.whatsapp_message_log import WhatsAppMessageLog
from kirana_store.models.delivery_partner import DeliveryPartner, PartnerAvailabilityLog

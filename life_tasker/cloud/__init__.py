from .supabase_client import SupabaseAuth, SupabaseDB
from .payment_client import PaymentGateway, PaymentStatusPoller
from .realtime_feed import TaskChangeFeed

import os

# Database Configuration
# Each service process points at its own database; local Docker Compose defaults below
DB_URL = os.getenv("DATABASE_URL", "postgres://user:password@db:5432/checkout_db")

# Application Metadata
PROJECT_NAME = "Checkout Saga Gateway"
VERSION = "1.0.0"
SERVICE_NAME = os.getenv("SERVICE_NAME", "api-gateway") # Envelope 'source' field

# Broker Configuration
KAFKA_BROKERS = os.getenv("KAFKA_BROKERS", "localhost:19092")
KAFKA_CLIENT_ID = os.getenv("KAFKA_CLIENT_ID", SERVICE_NAME)

# Outbox Publisher Configuration
POLLING_INTERVAL = float(os.getenv("POLLING_INTERVAL", 1)) # Publisher checks for pending events every N seconds
BATCH_SIZE = int(os.getenv("BATCH_SIZE", 10)) # How many events to fetch per poll
MAX_ATTEMPTS = int(os.getenv("MAX_ATTEMPTS", 5)) # Publish attempts before an event is marked FAILED
BACKOFF_BASE_SECONDS = float(os.getenv("BACKOFF_BASE_SECONDS", 1)) # available_at = now + 2^attempts * base

# Consumer Configuration
HANDLER_MAX_ATTEMPTS = int(os.getenv("HANDLER_MAX_ATTEMPTS", 3)) # Handler retries before a message is parked
HANDLER_RETRY_DELAY = float(os.getenv("HANDLER_RETRY_DELAY", 1))
ORDERS_CHECKOUT_GROUP = os.getenv("KAFKA_ORDERS_CONSUMER_GROUP", "orders-checkout")
ORDERS_PAYMENT_GROUP = os.getenv("KAFKA_ORDERS_PAYMENT_CONSUMER_GROUP", "orders-payment-results")
PAYMENT_GROUP = os.getenv("KAFKA_PAYMENT_CONSUMER_GROUP", "payment-requests")
FULFILLMENT_GROUP = os.getenv("KAFKA_FULFILLMENT_CONSUMER_GROUP", "fulfillment-orders")

# Idempotency Configuration
IDEMPOTENCY_TTL_HOURS = int(os.getenv("IDEMPOTENCY_TTL_HOURS", 24))
CHECKOUT_SCOPE = "POST:/api/v1/checkout/payment"

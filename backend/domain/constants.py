"""
Domain constants used across services/routers.
"""

# Payment providers recorded on orders
PROVIDER_NETS = "nets"
PROVIDER_PAYPAL = "paypal"
PROVIDER_REFUND = "refund"

# NETS checkout method name (also the provider recorded for QR payments)
METHOD_NETS = "nets"

# NETS webhook: response_code "00" or one of these txn_status values means paid
NETS_APPROVED_RESPONSE_CODE = "00"
NETS_SUCCESS_TXN_STATUSES = frozenset({"successful", "success", "completed", "2"})
NETS_REFERENCE_KEYS = ("txn_retrieval_ref", "txnRetrievalRef", "txn_id", "txnId", "reference")
NETS_MOCK_REFERENCE_PREFIX = "MOCK_NETS_"

# PayPal capture status that settles an order
PAYPAL_CAPTURE_COMPLETED = "COMPLETED"

# Refund requests
REFUND_REASON_MIN_LENGTH = 5

# Event type sent to idle status streams
HEARTBEAT_EVENT_TYPE = "heartbeat"

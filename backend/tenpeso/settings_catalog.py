# Overview: Registry of admin-editable runtime settings.
#
# Each entry declares the value type, default, and whether the storefront may
# read it. settings_service validates every write against this catalog.

SETTINGS_CATALOG = [
    # Checkout
    {
        "key": "checkout.enable_pickup",
        "type": "bool",
        "default": True,
        "category": "checkout",
        "public": True,
        "description": "Allow dorm pickup orders.",
    },
    {
        "key": "checkout.enable_delivery",
        "type": "bool",
        "default": False,
        "category": "checkout",
        "public": True,
        "description": "Allow off-campus delivery orders.",
    },
    {
        "key": "checkout.enable_gcash",
        "type": "bool",
        "default": True,
        "category": "checkout",
        "public": True,
        "description": "Accept GCash payments at checkout.",
    },
    {
        "key": "checkout.enable_cod",
        "type": "bool",
        "default": True,
        "category": "checkout",
        "public": True,
        "description": "Accept cash on pickup/delivery.",
    },
    {
        "key": "checkout.pickup_locations",
        "type": "string_list",
        "default": ["boys_411", "girls_206"],
        "category": "checkout",
        "public": True,
        "description": "Pickup points offered at checkout.",
    },
    {
        "key": "checkout.auto_paid_methods",
        "type": "string_list",
        "default": [],
        "category": "checkout",
        "public": False,
        "description": "Payment methods whose initial payment is recorded as paid.",
    },
    # GCash
    {
        "key": "gcash.account_name",
        "type": "string",
        "default": "",
        "category": "gcash",
        "public": True,
        "description": "Name shown on the GCash account.",
    },
    {
        "key": "gcash.account_number",
        "type": "string",
        "default": "",
        "category": "gcash",
        "public": True,
        "description": "GCash number customers send payments to.",
    },
    {
        "key": "gcash.instructions",
        "type": "string",
        "default": "",
        "category": "gcash",
        "public": True,
        "description": "Payment instructions shown at checkout.",
    },
    {
        "key": "gcash.service_fee_bps",
        "type": "int",
        "default": 200,
        "min": 0,
        "category": "gcash",
        "public": True,
        "description": "Cash-in/out service fee in basis points.",
    },
    {
        "key": "gcash.minimum_amount_cents",
        "type": "int",
        "default": 10000,
        "min": 0,
        "category": "gcash",
        "public": True,
        "description": "Smallest cash-in/out request accepted.",
    },
    # Delivery
    {
        "key": "delivery.fee_cents",
        "type": "int",
        "default": 0,
        "min": 0,
        "category": "delivery",
        "public": True,
        "description": "Flat fee added to delivery orders.",
    },
    {
        "key": "delivery.coverage_note",
        "type": "string",
        "default": "",
        "category": "delivery",
        "public": True,
        "description": "Where delivery is available.",
    },
]

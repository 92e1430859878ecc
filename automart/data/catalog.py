# automart/data/catalog.py
# static shop configuration, read-only at runtime
from decimal import Decimal

from automart.domain.schemas import Location, PaymentMethod, Product

LOCATIONS = {
    "markt-xy": Location(
        id="markt-xy",
        name="Markt XY - Gotthilf-Bayh Str X",
        address="Gotthilf-Bayh Straße X, Stadt",
        lat=48.7758,
        lng=9.1829,
        lockers=["locker-001", "locker-002", "locker-003"],
    ),
    "markt-a": Location(
        id="markt-a",
        name="Markt A - Hauptstraße 123",
        address="Hauptstraße 123, Stadt",
        lat=48.7659,
        lng=9.1759,
        lockers=["locker-101", "locker-102"],
    ),
    "markt-b": Location(
        id="markt-b",
        name="Markt B - Bahnhofstraße 456",
        address="Bahnhofstraße 456, Stadt",
        lat=48.7858,
        lng=9.1929,
        lockers=["locker-201", "locker-202", "locker-203", "locker-204"],
    ),
}

CATEGORIES = {
    "all": "Alle Produkte",
    "offers": "Angebote",
    "vegetarian": "Vegetarisch",
    "vegan": "Vegan",
    "snacks": "Snacks",
    "drinks": "Getränke",
    "frozen": "Tiefkühl",
    "dairy": "Molkereiprodukte",
}

SAMPLE_PRODUCTS = [
    Product(
        id="p001",
        name="Wagner Steinofen Pizza",
        description="Knusprige Steinofen Pizza mit Salami",
        price=Decimal("2.21"),
        original_price=Decimal("3.49"),
        category=["frozen", "offers"],
        badges=["offer"],
        compartment="freezer",
    ),
    Product(
        id="p002",
        name="Kinder Country Riegel",
        description="Milchschokolade mit knusprigen Cerealien",
        price=Decimal("1.99"),
        original_price=Decimal("2.49"),
        category=["snacks", "offers"],
        badges=["offer"],
        nutrition={"vegetarian": True},
        compartment="snack",
    ),
    Product(
        id="p003",
        name="Mozarella Käse",
        description="Wir nehmen nur Mozarella, alles andere ist Käse",
        price=Decimal("2.59"),
        category=["dairy", "vegetarian"],
        badges=["new"],
        nutrition={"vegetarian": True},
        compartment="fresh",
    ),
    Product(
        id="p004",
        name="Käregården Ungesalzen",
        description="Butter ohne Salz, cremig und mild",
        price=Decimal("2.15"),
        category=["dairy", "vegetarian"],
        nutrition={"vegetarian": True},
        compartment="fresh",
    ),
    Product(
        id="p005",
        name="Kerrygold Cheddar",
        description="Irischer Cheddar-Käse, würzig im Geschmack",
        price=Decimal("2.99"),
        category=["dairy", "vegetarian"],
        nutrition={"vegetarian": True},
        compartment="fresh",
    ),
    Product(
        id="p006",
        name="Bio Cola",
        description="Erfrischende Bio-Cola ohne Zusatzstoffe",
        price=Decimal("1.49"),
        category=["drinks", "vegan"],
        badges=["vegan"],
        nutrition={"vegetarian": True, "vegan": True},
        compartment="drink",
    ),
]

PRODUCTS_BY_ID = {p.id: p for p in SAMPLE_PRODUCTS}

TIME_SLOTS = [f"{h:02d}:00 - {h + 1:02d}:00 Uhr" for h in range(9, 20)]

PAYMENT_METHODS = [
    PaymentMethod(id="bank355", name="Bankkonto 355"),
    PaymentMethod(id="card1234", name="Kreditkarte ****1234"),
    PaymentMethod(id="paypal", name="PayPal"),
]


def filter_products(category: str = "all") -> list[Product]:
    if category == "all":
        return list(SAMPLE_PRODUCTS)
    return [p for p in SAMPLE_PRODUCTS if category in p.category]

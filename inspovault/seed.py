import copy

from .utils import new_item_id

PLACEHOLDER = "/placeholder.svg?height=400&width=600"

DEMO_ITEMS = [
    {
        "title": "Modern Dashboard Layout",
        "screenshots": [PLACEHOLDER],
        "urls": ["https://example.com/dashboard"],
        "notes": "Clean dashboard with good use of white space and minimal UI",
        "tags": ["dashboard", "ui", "minimal"],
        "createdAt": "2023-06-10T00:00:00+00:00",
    },
    {
        "title": "Colorful Illustration Style",
        "screenshots": [PLACEHOLDER, PLACEHOLDER],
        "urls": ["https://example.com/illustrations"],
        "notes": "Bold, colorful illustrations with playful shapes and characters",
        "tags": ["illustration", "colorful", "playful"],
        "createdAt": "2023-07-15T00:00:00+00:00",
    },
    {
        "title": "Minimalist Product Page",
        "screenshots": [PLACEHOLDER],
        "urls": ["https://example.com/product"],
        "notes": "Clean product page with focus on photography and typography",
        "tags": ["product", "minimal", "ecommerce"],
        "createdAt": "2023-08-22T00:00:00+00:00",
    },
    {
        "title": "Animated Micro-interactions",
        "screenshots": [PLACEHOLDER],
        "tags": ["animation", "micro-interaction", "ui"],
        "createdAt": "2023-09-05T00:00:00+00:00",
    },
    {
        "title": "Typography System Guide",
        "screenshots": [PLACEHOLDER],
        "notes": "Comprehensive guide to setting up a typography system with good hierarchy",
        "tags": ["typography", "design-system", "guide"],
        "createdAt": "2023-10-18T00:00:00+00:00",
    },
]


def demo_items():
    """Fresh copies of the demo records, each with a new id."""
    out = []
    for record in DEMO_ITEMS:
        item = copy.deepcopy(record)
        item["id"] = new_item_id()
        item["updatedAt"] = item["createdAt"]
        out.append(item)
    return out

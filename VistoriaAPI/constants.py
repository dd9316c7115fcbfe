"""
Global constants for the VistoriaAPI.

This module contains the fixed vocabularies shared by the API and the offline
client: checklist item labels, default room names and the condition severity
ordering used by inspection comparisons.
"""

CHECKLIST_ITEMS = [
    "Floor",
    "Walls",
    "Ceiling",
    "Doors",
    "Windows",
    "Paint",
    "Electrical",
    "Plumbing",
    "Other",
]
"""list[str]: Labels generated for every room when an inspection is created."""

DEFAULT_ROOMS = [
    "Living Room",
    "Dining Room",
    "Kitchen",
    "Laundry",
    "Bedroom 1",
    "Bedroom 2",
    "Bedroom 3",
    "Main Bathroom",
    "Suite Bathroom",
    "Balcony",
    "Garage",
    "Outdoor Area",
]
"""list[str]: Rooms seeded on a new property when the caller supplies none."""

SEVERITY_ORDER = ["GOOD", "FAIR", "POOR", "NOT_APPLICABLE", "UNVERIFIED"]
"""list[str]: Condition ranks, lower index is better."""

CONDITION_LABELS = {
    "GOOD": "Good",
    "FAIR": "Fair",
    "POOR": "Poor",
    "NOT_APPLICABLE": "N/A",
    "UNVERIFIED": "Not verified",
}

ALLOWED_PHOTO_TYPES = ("image/jpeg", "image/png", "image/webp")

PHOTO_MAX_SIZE = (1920, 1440)
PHOTO_WEBP_QUALITY = 85

RECENT_INSPECTIONS_LIMIT = 10

# Admin dashboard
DASHBOARD_LATEST_INSPECTIONS = 5
DASHBOARD_MONTHS = 12

SENSITIVE_MASK = "********"
"""str: Shown instead of the value of settings flagged as sensitive."""

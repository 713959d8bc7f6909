"""Sample attendees served when no Google Sheet is configured."""
from typing import List

from checkin.services.projection import Attendee

DEMO_ATTENDEES = [
    {
        "id": 1,
        "name": "John Doe",
        "company": "Acme Corporation",
        "email": "john.doe@acme.com",
        "phone": "+1-555-0123",
        "title": "Senior Manager",
        "department": "Sales",
        "dietary_restrictions": "None",
        "notes": "VIP Guest",
    },
    {
        "id": 2,
        "name": "Jane Smith",
        "company": "Tech Innovations Inc",
        "email": "jane.smith@techinc.com",
        "phone": "+1-555-0456",
        "title": "Lead Developer",
        "department": "Engineering",
        "dietary_restrictions": "Vegetarian",
        "notes": "Speaker",
    },
    {
        "id": 3,
        "name": "Mike Johnson",
        "company": "Global Solutions",
        "email": "mike.j@globalsol.com",
        "phone": "+1-555-0789",
        "title": "Director",
        "department": "Marketing",
        "dietary_restrictions": "Gluten-Free",
        "notes": "Panelist",
    },
    {
        "id": 4,
        "name": "Sarah Wilson",
        "company": "Startup XYZ",
        "email": "sarah.w@startupxyz.com",
        "phone": "+1-555-0321",
        "title": "CEO",
        "department": "Executive",
        "dietary_restrictions": "None",
        "notes": "Keynote",
    },
    {
        "id": 5,
        "name": "David Chen",
        "company": "Innovation Labs",
        "email": "david.chen@inno.com",
        "phone": "+1-555-0654",
        "title": "CTO",
        "department": "Technology",
        "dietary_restrictions": "None",
        "notes": "Workshop Leader",
    },
]


def demo_attendees(cache) -> List[Attendee]:
    attendees = []
    for record in DEMO_ATTENDEES:
        attributes = {k: v for k, v in record.items() if k != "id"}
        row_id = record["id"]
        attendees.append(Attendee(
            id=row_id,
            checked_in=row_id in cache,
            check_in_time=cache.get(row_id),
            attributes=attributes,
        ))
    return attendees


def is_demo_id(row_id: int) -> bool:
    return 1 <= row_id <= len(DEMO_ATTENDEES)

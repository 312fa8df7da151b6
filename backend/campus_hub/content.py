"""Static content served by the FAQ, contact and home pages."""

from typing import Optional
from .utils.filters import matches_text

FAQ_CATEGORIES = ["All", "Accommodation", "Marketplace", "Payment", "Account"]

FAQS = [
    {
        "question": "How do I find accommodation near my university?",
        "answer": "Search by university name or location. Results can be narrowed by price, "
                  "amenities, room type and distance from campus.",
        "category": "Accommodation",
        "is_popular": True,
    },
    {
        "question": "What documents do I need to rent accommodation?",
        "answer": "Usually a valid student ID or acceptance letter, proof of income or financial "
                  "support, a government-issued photo ID, previous rental references and guarantor "
                  "details for international students. Landlords may ask for more.",
        "category": "Accommodation",
        "is_popular": True,
    },
    {
        "question": "How do I list items on the marketplace?",
        "answer": "Sign in, choose 'Sell Item', upload clear photos, add a description and price, "
                  "pick payment and pickup options, then publish the listing.",
        "category": "Marketplace",
        "is_popular": True,
    },
    {
        "question": "Is it safe to buy from other students?",
        "answer": "Accounts are tied to verified students and listings can be reported. Meet in "
                  "public places for exchanges and trust your instincts.",
        "category": "Marketplace",
        "is_popular": False,
    },
    {
        "question": "What payment methods do you accept?",
        "answer": "Credit and debit cards, PayPal and bank transfers. Student loan payments are "
                  "accepted where the property supports them.",
        "category": "Payment",
        "is_popular": False,
    },
    {
        "question": "How do I cancel my accommodation booking?",
        "answer": "More than 30 days before move-in: full refund minus a processing fee. "
                  "15 to 30 days: 50% refund. Less than 15 days: no refund except emergencies.",
        "category": "Accommodation",
        "is_popular": False,
    },
    {
        "question": "How do I verify my student status?",
        "answer": "Upload a photo of your student ID, provide your university email and submit an "
                  "enrollment letter. Verification usually takes 24-48 hours.",
        "category": "Account",
        "is_popular": True,
    },
    {
        "question": "What if I have issues with my accommodation?",
        "answer": "Contact your landlord first, document the issue with photos, then report it "
                  "through the platform. Use the emergency line for urgent matters.",
        "category": "Accommodation",
        "is_popular": False,
    },
    {
        "question": "Can international students use this platform?",
        "answer": "Yes. International payment methods, documentation guidance and multilingual "
                  "support are available, and many properties welcome international students.",
        "category": "Account",
        "is_popular": False,
    },
    {
        "question": "How do marketplace disputes get resolved?",
        "answer": "Both parties first try to settle directly. Either party can then open a dispute "
                  "case, which the mediation team reviews within 5-7 business days.",
        "category": "Marketplace",
        "is_popular": False,
    },
]

CONTACT_CHANNELS = [
    {"title": "Phone Support", "details": "+1 (555) 123-4567",
     "description": "Monday - Friday, 9:00 AM - 6:00 PM", "available": True},
    {"title": "Email Support", "details": "support@studenthub.edu",
     "description": "Response within 24 hours", "available": True},
    {"title": "Live Chat", "details": "Available on website",
     "description": "Monday - Friday, 9:00 AM - 9:00 PM", "available": True},
    {"title": "Office Location", "details": "123 University Ave, Student District",
     "description": "City, State 12345", "available": False},
]

EMERGENCY_CONTACTS = [
    {"title": "Emergency Maintenance", "number": "+1 (555) 911-2345", "time": "24/7"},
    {"title": "Security Issues", "number": "+1 (555) 911-5678", "time": "24/7"},
    {"title": "Urgent Accommodation", "number": "+1 (555) 911-9012", "time": "24/7"},
]

CONTACT_ACK = "Thank you for your message! We'll get back to you within 24 hours."


def search_faqs(query: Optional[str] = None, category: Optional[str] = None) -> dict:
    """Filter FAQ entries by free text and category.

    The response also carries per-category totals and the number of
    popular questions so the page can render its sidebar counts.
    """
    category = category or "All"
    if category not in FAQ_CATEGORIES:
        raise ValueError(f"unknown category: {category}")
    results = [
        f for f in FAQS
        if matches_text(query, f["question"], f["answer"])
        and (category == "All" or f["category"] == category)
    ]
    counts = {c: (len(FAQS) if c == "All" else sum(1 for f in FAQS if f["category"] == c)) for c in FAQ_CATEGORIES}
    return {
        "results": results,
        "total": len(results),
        "category_counts": counts,
        "popular_count": sum(1 for f in FAQS if f["is_popular"]),
    }


def contact_info() -> dict:
    return {"channels": CONTACT_CHANNELS, "emergency": EMERGENCY_CONTACTS}

"""Curated stories that are always listed in the library alongside community submissions."""
from __future__ import annotations

from typing import Any, Final

SEED_RESOURCES: Final[tuple[dict[str, Any], ...]] = (
    {
        "id": "1",
        "title": "The Weight of a Name",
        "category": ["Caste", "Identity"],
        "shortDescription": (
            'A personal account of navigating urban life while carrying a last name that reveals a '
            '"lower-caste" origin.'
        ),
        "content": (
            "Growing up, my last name was just a name. In the city, it felt anonymous. But as I entered "
            "college and later the professional world, I began to see the subtle shifts in people's eyes "
            "when they heard it. This is the story of how I learned to carry the weight of my name not as "
            "a burden, but as a banner of my heritage."
        ),
        "imageUrl": "https://picsum.photos/seed/caste-identity/400/300",
        "status": "published",
        "tags": ["Caste System", "Discrimination", "Identity", "Social Justice", "India"],
        "authorName": "Priya Rao",
    },
    {
        "id": "2",
        "title": "Finding My Voice",
        "category": ["Gender", "LGBTQ+"],
        "shortDescription": (
            "The journey of a transgender man's self-discovery and transition in a society bound by "
            "traditional norms."
        ),
        "content": (
            "For years, my reflection felt like a stranger. The journey to find my true self was the most "
            "challenging and liberating experience of my life, a path marked by fear, loss, and immense "
            "courage that led me to a place where I could finally hear my own voice."
        ),
        "imageUrl": "https://picsum.photos/seed/gender-journey/400/300",
        "status": "published",
        "tags": ["Transgender", "Gender Identity", "Self-Discovery", "Community", "Advocacy"],
        "authorName": "Alex Chen",
    },
    {
        "id": "3",
        "title": "Two Rivers, One Home",
        "category": ["Migration", "Culture"],
        "shortDescription": (
            "A refugee's story of fleeing conflict and building a new life, grappling with memories of the "
            "past and hopes for the future."
        ),
        "content": (
            "I carry two rivers inside me: the one that flowed through my childhood village, and the one "
            "that runs through this new city. To be a refugee is to mourn a home you can never return to "
            "while building a new one from scratch."
        ),
        "imageUrl": "https://picsum.photos/seed/migration-story/400/300",
        "status": "published",
        "tags": ["Refugee Experience", "Migration", "Belonging", "Cultural Identity", "Resilience"],
        "authorName": "Fatima Al-Jamil",
    },
    {
        "id": "4",
        "title": "The Echo of a Protest",
        "category": ["Social Justice", "Activism"],
        "shortDescription": (
            "An activist recounts their experience in a major social movement and the personal "
            "transformation that followed."
        ),
        "content": (
            "The first time I joined the protest, my voice was a timid whisper among a roar of thousands. "
            "Activism is not just about changing laws; it's about unlearning silence and finding a "
            "collective strength you never knew you had."
        ),
        "imageUrl": "https://picsum.photos/seed/social-justice/400/300",
        "status": "published",
        "tags": ["Activism", "Social Protest", "Community Organizing", "Human Rights", "Change"],
        "authorName": "David Imani",
    },
)


__all__ = ["SEED_RESOURCES"]

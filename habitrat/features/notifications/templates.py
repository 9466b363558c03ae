"""
habitrat/features/notifications/templates.py

Message copy per notification category. Placeholders: {habit}, {streak}.
"""

import random
from typing import Dict, List, Optional

STREAK_TITLE = "🔥 Streak at Risk!"
DEFAULT_TITLE = "HabitRat"

TEMPLATES: Dict[str, List[str]] = {
    # Neutral reminder
    "basic": [
        "Time for {habit}! small steps.",
        "Don't forget {habit} today.",
        "Ready to crush {habit}?",
        "Gentle reminder: {habit} awaits.",
        "Keep the momentum: {habit} time.",
    ],
    # Loss aversion
    "streak_protection": [
        "🔥 Danger! Your {streak} day streak on {habit} is at risk!",
        "Don't let your {streak} day streak break now!",
        "Save your streak! Do {habit} before midnight.",
        "You've come too far to stop. {streak} days and counting!",
        "Emergency: {habit} streak entering critical zone.",
    ],
    # Pride
    "identity": [
        "You're the kind of person who crushes {habit}.",
        "{habit} is just who you are now.",
        "Look at you go! A true {habit} master.",
        "Excellence is a habit, and you're proving it with {habit}.",
        "Building a better you, one {habit} at a time.",
    ],
    # Empathy after a miss
    "recovery": [
        "Missed yesterday? No stress. Today is a fresh start.",
        "The best time to plant a tree was yesterday. Second best is now.",
        "Don't break the chain twice. Get back on {habit}!",
        "Bounce back! One miss isn't failure.",
        "Resilience is key. Restart {habit} today.",
    ],
}


def title_for(category: str) -> str:
    return STREAK_TITLE if category == "streak_protection" else DEFAULT_TITLE


def render(category: str, habit_name: str, streak: int, rng: Optional[random.Random] = None) -> str:
    """Pick a template uniformly and fill it in."""
    template = (rng or random).choice(TEMPLATES[category])
    return template.replace("{habit}", habit_name).replace("{streak}", str(streak))

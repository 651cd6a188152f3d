# services/emoji_scale.py
# The fixed 5-point kiosk scale: id -> (emoji, label)
EMOJI_SCALE = {
    1: ("😍", "Excellent"),
    2: ("😊", "Good"),
    3: ("😐", "Okay"),
    4: ("😞", "Poor"),
    5: ("😡", "Terrible"),
}

EMOJI_IDS = tuple(EMOJI_SCALE.keys())

# Character-only answers from older kiosks
EMOJI_CHAR_TO_ID = {emoji: emoji_id for emoji_id, (emoji, _) in EMOJI_SCALE.items()}
EMOJI_CHAR_TO_ID["😢"] = 4


def emoji_for(emoji_id):
    entry = EMOJI_SCALE.get(emoji_id)
    return entry[0] if entry else None


def label_for(emoji_id):
    entry = EMOJI_SCALE.get(emoji_id)
    return entry[1] if entry else "Unknown"


def resolve_emoji_id(emoji_id=None, emoji=None):
    """Bucket of a stored answer: its EmojiID when valid, else its character."""
    if emoji_id is not None:
        try:
            emoji_id = int(emoji_id)
        except (TypeError, ValueError):
            emoji_id = None
        if emoji_id in EMOJI_SCALE:
            return emoji_id
    if emoji:
        return EMOJI_CHAR_TO_ID.get(emoji.strip())
    return None


def percentage(count: int, total: int) -> float:
    if not total:
        return 0
    return round(count * 100.0 / total, 2)


def empty_counts() -> dict:
    return {emoji_id: 0 for emoji_id in EMOJI_IDS}

